"""
Line grammar descriptors for the peak list formats.

MGF and MSP share one reading engine. What differs between them, record
delimiters, key vocabulary and title encoding, is described by a
:class:`Dialect` instance. :data:`MGF` and :data:`MSP` are the two
dialects shipped with the library.
"""
import re
import enum
import itertools

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Pattern, Tuple

from mgftools import const
from mgftools.const import (
    TITLE_FIELD,
    CHARGE_FIELD,
    PRECURSOR_FIELD,
    RETENTION_TIME_FIELD,
    SCAN_NUMBER_FIELD,
    COMMENT_FIELD,
)
from mgftools.spectrum import Charge

from .fields import decode_title, parse_charges


class LineKind(enum.Enum):
    blank = "blank"
    begin = "begin"
    end = "end"
    key = "key"
    comment = "comment"
    other = "other"


def _generate_numpeaks_keys():
    w1 = "num"
    w2 = "peaks"
    seps = (" ", "")
    cases = (str.lower, str.title, str.upper)
    w1_cases = [c(w1) for c in cases]
    w2_cases = [c(w2) for c in cases]
    return {
        (w1c + sep + w2c)
        for (sep, w1c, w2c) in itertools.product(seps, w1_cases, w2_cases)
    }


NUM_PEAKS_KEYS = _generate_numpeaks_keys()

LEADER_TERMS_PATTERN = re.compile(r"(Name|NAME|Compound|COMPOUND)\s*:")
LEADER_TERMS_LINE_PATTERN = re.compile(r"(?:Name|NAME|Compound|COMPOUND)\s*:\s*(.*)")

NAME_CHARGE_PATTERN = re.compile(r"/(\d+)$")


def split_comment(value: str) -> List[Tuple[str, Optional[str]]]:
    """
    Split an MSP ``Comment`` value into ``key=value`` items.

    Items are separated by spaces, except for spaces inside double quotes.
    Items without ``=`` are returned with a :const:`None` value.
    """
    comment_items = value.split(" ")

    #### Any spaces within quotes are then de-split
    fixed_comment_items = []
    new_item = ""
    for item in comment_items:
        if new_item > "":
            new_item = new_item + " "
        new_item = new_item + item
        n_quotes = new_item.count('"')
        if n_quotes % 2 == 0:
            fixed_comment_items.append(new_item)
            new_item = ""

    #### Try to split each item on the first = character
    pairs = []
    for item in fixed_comment_items:
        if not item:
            continue
        if item.count("=") > 0:
            comment_key, comment_value = item.split("=", 1)
            cleaned_key = comment_key.strip('"')
            if len(cleaned_key) != len(comment_key):
                comment_value = comment_value.strip('"')
            pairs.append((cleaned_key, comment_value))
        else:
            pairs.append((item, None))
    return pairs


def _identity(value: str) -> str:
    return value


@dataclass(frozen=True)
class Dialect:
    """
    Describes the line grammar of one peak list format.

    Attributes
    ----------
    name : str
        The format name
    extensions : tuple of str
        Lower case file extensions, without the leading dot
    begin_pattern : :class:`re.Pattern`
        Matches a (trimmed) line opening a record
    end_pattern : :class:`re.Pattern`, optional
        Matches a (trimmed) line closing a record. When :const:`None`, a
        blank line closes the record.
    key_pattern : :class:`re.Pattern`
        Matches a key line, capturing the key and the value
    fields : Mapping[str, Optional[str]]
        Maps recognized keys to the record field they populate. Keys mapped
        to :const:`None` are recognized but not interpreted.
    comment_fields : Mapping[str, str]
        Maps items of a comment field to the record field they populate
    title_key : str
        The key used when writing a title line
    charge_key : str
        The key used when writing a charge line
    key_separator : str
        The separator used when writing a key line
    comment_prefixes : tuple of str
        Prefixes of comment lines
    title_on_begin_line : bool
        Whether the title is carried by the record opening line
    implicit_end : bool
        Whether an opening line or the end of the input also closes an open record
    peak_separator : str, optional
        A delimiter between several peaks on one line
    url_encoded_titles : bool
        Whether titles are URL encoded
    """

    name: str
    extensions: Tuple[str, ...]
    begin_pattern: Pattern
    end_pattern: Optional[Pattern]
    key_pattern: Pattern
    fields: Mapping[str, Optional[str]]
    title_key: str
    charge_key: str
    key_separator: str
    comment_fields: Mapping[str, str] = field(default_factory=dict)
    comment_prefixes: Tuple[str, ...] = ("#", )
    title_on_begin_line: bool = False
    implicit_end: bool = False
    peak_separator: Optional[str] = None
    url_encoded_titles: bool = False

    def is_begin(self, line: str) -> bool:
        return self.begin_pattern.match(line) is not None

    def is_end(self, line: str) -> bool:
        if self.end_pattern is None:
            return not line
        return self.end_pattern.match(line) is not None

    def is_comment(self, line: str) -> bool:
        return line.startswith(self.comment_prefixes)

    def classify(self, line: str) -> LineKind:
        """Classify a trimmed line"""
        if self.is_begin(line):
            return LineKind.begin
        if self.is_end(line):
            return LineKind.end
        if not line:
            return LineKind.blank
        if self.is_comment(line):
            return LineKind.comment
        if self.key_pattern.match(line) is not None:
            return LineKind.key
        return LineKind.other

    def split_key(self, line: str) -> Optional[Tuple[str, str]]:
        match = self.key_pattern.match(line)
        if match is None:
            return None
        return match.group(1), match.group(2).strip()

    def title_from_begin(self, line: str) -> Optional[str]:
        if not self.title_on_begin_line:
            return None
        match = LEADER_TERMS_LINE_PATTERN.match(line)
        if match is None:
            return None
        return match.group(1).strip() or None

    def expand(self, key: str, value: str) -> Iterable[Tuple[str, str]]:
        """
        Translate a key line into ``(field, value)`` pairs.

        Unrecognized keys and keys recognized but not interpreted yield nothing.
        """
        target = self.fields.get(key)
        if target is None:
            return ()
        if target == COMMENT_FIELD:
            return [
                (self.comment_fields[item_key], item_value)
                for item_key, item_value in split_comment(value)
                if item_key in self.comment_fields and item_value is not None
            ]
        return ((target, value), )

    def decode_title(self, raw: str) -> str:
        if self.url_encoded_titles:
            return decode_title(raw)
        return raw

    def charges_from_title(self, title: Optional[str]) -> Optional[List[Charge]]:
        """Extract the charge embedded in a title, for formats whose names end in ``/<charge>``"""
        if not self.title_on_begin_line or not title:
            return None
        match = NAME_CHARGE_PATTERN.search(title)
        if match is None:
            return None
        return parse_charges(match.group(1))

    def format_key_line(self, key: str, value: str) -> str:
        return f"{key}{self.key_separator}{value}"

    def format_title_line(self, title: str) -> str:
        return self.format_key_line(self.title_key, title)

    def format_charge_line(self, charges: Iterable[int]) -> str:
        return self.format_key_line(
            self.charge_key, const.CHARGE_AND_SEPARATOR.join(f"{charge}+" for charge in charges))


mgf_fields = {
    const.MGF_TITLE: TITLE_FIELD,
    const.MGF_CHARGE: CHARGE_FIELD,
    const.MGF_PEPMASS: PRECURSOR_FIELD,
    const.MGF_RTINSECONDS: RETENTION_TIME_FIELD,
    const.MGF_SCANS: SCAN_NUMBER_FIELD,
    const.MGF_TOLU: None,
    const.MGF_TOL: None,
    const.MGF_SEQ: None,
    const.MGF_COMP: None,
    const.MGF_ETAG: None,
    const.MGF_TAG: None,
    const.MGF_RAWSCANS: None,
    const.MGF_INSTRUMENT: None,
}


MGF = Dialect(
    name="mgf",
    extensions=("mgf", ),
    begin_pattern=re.compile(r"^BEGIN IONS$"),
    end_pattern=re.compile(r"^END IONS$"),
    key_pattern=re.compile(r"^([A-Za-z][A-Za-z0-9_\[\]]*)\s*=(.*)$"),
    fields=mgf_fields,
    title_key=const.MGF_TITLE,
    charge_key=const.MGF_CHARGE,
    key_separator="=",
    comment_prefixes=("#", ";", "!", "/"),
    url_encoded_titles=True,
)


msp_fields = {
    const.MSP_CHARGE: CHARGE_FIELD,
    "precursor_charge": CHARGE_FIELD,
    "PrecursorMZ": PRECURSOR_FIELD,
    "PRECURSORMZ": PRECURSOR_FIELD,
    "Precursor_mz": PRECURSOR_FIELD,
    "ObservedPrecursorMZ": PRECURSOR_FIELD,
    const.MSP_RETENTION_TIME: RETENTION_TIME_FIELD,
    "RT": RETENTION_TIME_FIELD,
    const.MSP_COMMENT: COMMENT_FIELD,
    "Comments": COMMENT_FIELD,
    "MW": None,
    "Fullname": None,
    "Formula": None,
}
msp_fields.update({key: None for key in NUM_PEAKS_KEYS})

msp_comment_fields = {
    const.MSP_PARENT: PRECURSOR_FIELD,
    const.MSP_SCAN: SCAN_NUMBER_FIELD,
    const.MSP_RETENTION_TIME: RETENTION_TIME_FIELD,
    "RT": RETENTION_TIME_FIELD,
}


MSP = Dialect(
    name="msp",
    extensions=("msp", ),
    begin_pattern=LEADER_TERMS_PATTERN,
    end_pattern=None,
    key_pattern=re.compile(r"^([A-Za-z][A-Za-z0-9_ ]*?)\s*:\s*(.*)$"),
    fields=msp_fields,
    comment_fields=msp_comment_fields,
    title_key="Name",
    charge_key=const.MSP_CHARGE,
    key_separator=": ",
    title_on_begin_line=True,
    implicit_end=True,
    peak_separator=";",
)


DIALECTS = {
    MGF.name: MGF,
    MSP.name: MSP,
}


def dialect_for(name: str) -> Dialect:
    """Look up a dialect by name"""
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown peak list dialect {name!r}") from None
