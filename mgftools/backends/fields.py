"""
Grammar for the individual values found on peak list key lines.

These parsers are shared by the streaming reader, the random access fetcher
and the indexer. They raise :class:`~.FormatError` and leave it to the caller
to decide whether a failure is fatal.
"""
import re

from typing import List, Optional, Tuple, Union
from urllib import parse as urlparse

from mgftools.const import PLUS, MINUS, DEFAULT_CHARGE, CHARGE_AND_SEPARATOR
from mgftools.spectrum import Charge
from mgftools.utils import FormatError


SPACE_SPLITTER = re.compile(r"\s+")


RetentionTime = Union[float, Tuple[float, float]]


def parse_charges(value: str) -> List[Charge]:
    """
    Parse the value of a charge line into a list of :class:`~.Charge`.

    ``"2+ and 3+"``, ``"2+,3+"`` and ``"2,3"`` all produce two positive
    charges. ``Mr`` tokens are ignored. If no charge remains, a single
    default charge of ``1+`` is returned.

    Raises
    ------
    FormatError
        If a token cannot be read as a charge.
    """
    tokens = []
    for block in value.split(CHARGE_AND_SEPARATOR):
        for token in block.split(","):
            token = token.strip()
            if token:
                tokens.append(token)

    charges = []
    for token in tokens:
        if token.lower() == "mr":
            continue
        sign = PLUS
        digits = token
        if token.endswith("+"):
            digits = token[:-1]
        elif token.endswith("-"):
            sign = MINUS
            digits = token[:-1]
        elif token[0] in "+-":
            sign = MINUS if token[0] == "-" else PLUS
            digits = token[1:]
        digits = digits.strip()
        if not digits.isdigit():
            raise FormatError(f"'{token}' could not be processed as a valid precursor charge", raw=token)
        charges.append(Charge(sign, int(digits)))

    if not charges:
        charges.append(Charge(PLUS, DEFAULT_CHARGE))
    return charges


def _strip_duration(value: str) -> str:
    # RTINSECONDS=PT121.250000S
    if value.startswith("PT") and value.endswith("S"):
        return value[2:-1]
    return value


def parse_retention_time(value: str, title: Optional[str] = None) -> Optional[RetentionTime]:
    """
    Parse a retention time value.

    Parameters
    ----------
    value : str
        The raw value, either a single time (``"121.25"``, ``"PT121.25S"``)
        or a ``start-end`` window (``"10-20"``).
    title : str, optional
        The spectrum title, used to give context to errors.

    Returns
    -------
    float, tuple of float, or None
        A point retention time, a window, or :const:`None` when the value
        does not have a recognizable shape.

    Raises
    ------
    FormatError
        If a component cannot be read as a number.
    """
    segments = value.strip().split("-")
    while len(segments) > 1 and not segments[-1]:
        segments.pop()
    try:
        if len(segments) == 1:
            return float(_strip_duration(segments[0]))
        elif len(segments) == 2 and segments[0]:
            return (float(segments[0]), float(segments[1]))
    except ValueError:
        raise FormatError(f"Cannot parse retention time: {value}", raw=value, title=title) from None
    return None


def parse_precursor(value: str, title: Optional[str] = None) -> Tuple[float, Optional[float]]:
    """
    Parse a precursor value of the form ``mz [intensity]``.

    Raises
    ------
    FormatError
        If either number cannot be parsed.
    """
    values = SPACE_SPLITTER.split(value.strip())
    try:
        mz = float(values[0])
        intensity = None
        if len(values) > 1:
            intensity = float(values[1])
    except ValueError:
        raise FormatError(f"Cannot parse precursor: {value}", raw=value, title=title) from None
    return mz, intensity


def parse_peak_line(line: str, separator: Optional[str] = None) -> List[Tuple[float, float]]:
    """
    Read the peaks on a line, skipping anything that is not a peak.

    Parameters
    ----------
    line : str
        A trimmed line
    separator : str, optional
        A delimiter between several peaks sharing one line, as some MSP
        dialects do with ``;``.

    Returns
    -------
    list of tuple
        The ``(mz, intensity)`` pairs read, possibly empty.
    """
    if separator is not None and separator in line:
        blocks = line.split(separator)
    else:
        blocks = (line, )
    peaks = []
    for block in blocks:
        values = block.split()
        if len(values) < 2:
            continue
        try:
            peaks.append((float(values[0]), float(values[1])))
        except ValueError:
            continue
    return peaks


def decode_title(raw: str) -> str:
    """
    URL-decode a spectrum title.

    Raises
    ------
    UnicodeDecodeError
        If the percent-escaped bytes are not valid UTF-8.
    """
    return urlparse.unquote_plus(raw, encoding="utf-8", errors="strict")
