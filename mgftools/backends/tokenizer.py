"""
The line state machine shared by sequential reading and random access.

A :class:`SpectrumTokenizer` consumes trimmed lines one at a time and emits a
:class:`~.SpectrumRecord` whenever a record is closed. Sequential reading
(:func:`iter_spectra`) starts it outside of any record, while the random
access fetcher positions the underlying stream at a stored index offset and
starts it inside the record with :meth:`SpectrumTokenizer.begin_record`.
"""
import enum
import logging

from typing import Iterable, Iterator, List, Optional, Tuple

from mgftools.const import (
    TITLE_FIELD,
    CHARGE_FIELD,
    PRECURSOR_FIELD,
    RETENTION_TIME_FIELD,
    SCAN_NUMBER_FIELD,
)
from mgftools.spectrum import Charge, Peak, PrecursorInfo, SpectrumRecord
from mgftools.index.accumulator import TitleRegistry
from mgftools.utils import FormatError

from .dialect import Dialect, LineKind, MGF
from .fields import parse_charges, parse_peak_line, parse_precursor, parse_retention_time


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class ReaderState(enum.Enum):
    outside = "outside"
    inside_record = "inside_record"


def decode_title_or_raw(dialect: Dialect, raw: str, filename: Optional[str] = None) -> str:
    """Decode a title, falling back to the raw text when decoding fails"""
    try:
        return dialect.decode_title(raw)
    except UnicodeDecodeError as err:
        logger.warning("Could not decode spectrum title %r in %s: %s", raw, filename, err)
        return raw


class _RecordBuilder:
    """The per-record accumulators, reset at every opening line"""

    title: Optional[str]
    scan_number: Optional[str]
    charges: List[Charge]
    mz: Optional[float]
    intensity: Optional[float]
    retention_time: Optional[float]
    retention_time_start: Optional[float]
    retention_time_end: Optional[float]
    peaks: dict

    def __init__(self):
        self.title = None
        self.scan_number = None
        self.charges = []
        self.mz = None
        self.intensity = None
        self.retention_time = None
        self.retention_time_start = None
        self.retention_time_end = None
        self.peaks = {}

    def set_retention_time(self, value):
        if isinstance(value, tuple):
            self.retention_time_start, self.retention_time_end = value
        else:
            self.retention_time = value

    def build_precursor(self) -> PrecursorInfo:
        precursor = PrecursorInfo(
            mz=self.mz, intensity=self.intensity, charges=list(self.charges))
        if self.retention_time_start is not None and self.retention_time_end is not None:
            precursor.retention_time_window = (self.retention_time_start, self.retention_time_end)
        else:
            precursor.retention_time = self.retention_time
        return precursor

    def build(self, title: Optional[str], source_file: Optional[str]) -> SpectrumRecord:
        return SpectrumRecord(
            title=title,
            scan_number=self.scan_number,
            precursor=self.build_precursor(),
            peaks=self.peaks,
            source_file=source_file,
        )


class SpectrumTokenizer:
    """
    A two state machine turning lines into :class:`~.SpectrumRecord` objects.

    Parameters
    ----------
    dialect : :class:`~.Dialect`
        The line grammar to apply
    source_file : str, optional
        The base name of the file being read, stamped on every record and
        used to give context to errors.
    titles : :class:`~.TitleRegistry`, optional
        When given, emitted titles are deduplicated through this registry.
    """

    dialect: Dialect
    source_file: Optional[str]
    titles: Optional[TitleRegistry]
    state: ReaderState

    _record: Optional[_RecordBuilder]

    def __init__(self, dialect: Dialect = MGF, source_file: Optional[str] = None,
                 titles: Optional[TitleRegistry] = None):
        self.dialect = dialect
        self.source_file = source_file
        self.titles = titles
        self.state = ReaderState.outside
        self._record = None

    @property
    def current_title(self) -> Optional[str]:
        if self._record is None:
            return None
        return self._record.title

    def begin_record(self, line: Optional[str] = None):
        """
        Enter a new record.

        Parameters
        ----------
        line : str, optional
            The opening line, for dialects which carry the title on it
        """
        self.state = ReaderState.inside_record
        self._record = _RecordBuilder()
        if self.dialect.title_on_begin_line and line is not None:
            title = self.dialect.title_from_begin(line)
            if title is not None:
                self._record.title = title
                charges = self.dialect.charges_from_title(title)
                if charges:
                    self._record.charges = charges

    def feed(self, line: str) -> Optional[SpectrumRecord]:
        """
        Consume one line.

        Returns
        -------
        :class:`~.SpectrumRecord` or None
            The record closed by this line, if any
        """
        line = line.strip()
        kind = self.dialect.classify(line)
        if self.state is ReaderState.outside:
            if kind is LineKind.begin:
                self.begin_record(line)
            return None

        if kind is LineKind.end:
            return self._emit()
        elif kind is LineKind.begin:
            emitted = None
            if self.dialect.implicit_end:
                emitted = self._emit()
            else:
                logger.debug("Unterminated record %r discarded in %s", self.current_title, self.source_file)
                #### The indexer still counts the discarded title
                if self.current_title is not None and self.titles is not None:
                    self.titles.register(self.current_title, self.source_file)
            self.begin_record(line)
            return emitted
        elif kind is LineKind.blank or kind is LineKind.comment:
            return None
        elif kind is LineKind.key:
            key, value = self.dialect.split_key(line)
            for field_name, field_value in self.dialect.expand(key, value):
                self._apply(field_name, field_value)
        else:
            for mz, intensity in parse_peak_line(line, self.dialect.peak_separator):
                self._record.peaks[mz] = Peak(mz, intensity)
        return None

    def finish(self) -> Optional[SpectrumRecord]:
        """
        Signal the end of the input.

        A record still open is emitted when the dialect closes records
        implicitly, and dropped otherwise.
        """
        if self.state is ReaderState.inside_record:
            if self.dialect.implicit_end:
                return self._emit()
            logger.debug("Unterminated trailing record %r dropped in %s", self.current_title, self.source_file)
            self.state = ReaderState.outside
            self._record = None
        return None

    def precursor(self) -> PrecursorInfo:
        """The precursor description accumulated so far for the open record"""
        return self._record.build_precursor()

    def _emit(self, title: Optional[str] = None) -> SpectrumRecord:
        record = self._record
        if title is None:
            title = record.title
            if title is not None and self.titles is not None:
                title = self.titles.register(title, self.source_file)
        self.state = ReaderState.outside
        self._record = None
        return record.build(title, self.source_file)

    def close_record(self, title: Optional[str] = None) -> SpectrumRecord:
        """Close the open record, overriding its title with ``title`` when given"""
        return self._emit(title)

    def _apply(self, field_name: str, value: str):
        record = self._record
        try:
            if field_name == TITLE_FIELD:
                if record.title is None:
                    record.title = decode_title_or_raw(self.dialect, value, self.source_file)
            elif field_name == CHARGE_FIELD:
                record.charges = parse_charges(value)
            elif field_name == PRECURSOR_FIELD:
                record.mz, record.intensity = parse_precursor(value, record.title)
            elif field_name == RETENTION_TIME_FIELD:
                try:
                    retention_time = parse_retention_time(value, record.title)
                except FormatError as err:
                    logger.warning("%s", err.add_context(filename=self.source_file))
                    retention_time = None
                if retention_time is not None:
                    record.set_retention_time(retention_time)
            elif field_name == SCAN_NUMBER_FIELD:
                record.scan_number = value
        except FormatError as err:
            raise err.add_context(record.title, self.source_file)


def iter_spectra(lines: Iterable[str], dialect: Dialect = MGF, source_file: Optional[str] = None,
                 titles: Optional[TitleRegistry] = None) -> Iterator[SpectrumRecord]:
    """
    Read every record from a sequence of lines.

    Titles are deduplicated with the same ``_<n>`` suffix scheme used by
    the indexer, so the records carry the titles an index would report.

    Parameters
    ----------
    lines : Iterable[str]
        The lines of the file, with or without their line endings
    dialect : :class:`~.Dialect`
        The line grammar to apply
    source_file : str, optional
        The base name of the file being read
    titles : :class:`~.TitleRegistry`, optional
        The registry to deduplicate titles through. A fresh one is used by default.

    Yields
    ------
    :class:`~.SpectrumRecord`
    """
    if titles is None:
        titles = TitleRegistry()
    tokenizer = SpectrumTokenizer(dialect, source_file, titles)
    for line in lines:
        record = tokenizer.feed(line)
        if record is not None:
            yield record
    record = tokenizer.finish()
    if record is not None:
        yield record


def _resume_record(lines: Iterator[str], dialect: Dialect, source_file: Optional[str],
                   title: Optional[str]) -> SpectrumTokenizer:
    tokenizer = SpectrumTokenizer(dialect, source_file)
    if not dialect.title_on_begin_line:
        tokenizer.begin_record()
        return tokenizer
    #### These offsets point at the opening line itself
    line = next(lines, "").strip()
    if dialect.classify(line) is not LineKind.begin:
        raise FormatError(
            "No record starts at this offset", raw=line, title=title, filename=source_file)
    tokenizer.begin_record(line)
    return tokenizer


def read_open_record(lines: Iterable[str], dialect: Dialect = MGF, source_file: Optional[str] = None,
                     title: Optional[str] = None) -> SpectrumRecord:
    """
    Read one record starting from an index offset.

    For dialects which carry the title on the opening line, ``lines`` starts
    with that opening line. Otherwise the opening line has already been
    consumed.

    Parameters
    ----------
    lines : Iterable[str]
        The lines of the file from the record's index offset on
    title : str, optional
        A title to stamp on the record in place of the one read from the file

    Raises
    ------
    FormatError
        If the input ends before the record is closed, or if ``lines`` does
        not start with an opening line when one is expected
    """
    lines = iter(lines)
    tokenizer = _resume_record(lines, dialect, source_file, title)
    for line in lines:
        line = line.strip()
        kind = dialect.classify(line)
        if kind is LineKind.end or (kind is LineKind.begin and dialect.implicit_end):
            return tokenizer.close_record(title)
        elif kind is LineKind.begin:
            raise FormatError(
                "Truncated record, found the start of another record before the record was closed",
                title=tokenizer.current_title or title, filename=source_file)
        tokenizer.feed(line)
    if dialect.implicit_end:
        return tokenizer.close_record(title)
    raise FormatError(
        "Truncated record, reached the end of the file before the record was closed",
        title=tokenizer.current_title or title, filename=source_file)


def read_open_precursor(lines: Iterable[str], dialect: Dialect = MGF, source_file: Optional[str] = None,
                        title: Optional[str] = None) -> Tuple[PrecursorInfo, Optional[str]]:
    """
    Read the precursor description of one record starting from an index offset.

    Reading stops at the closing line or at the first line that is neither a
    key line, a comment nor blank, so peaks are never materialized.

    Returns
    -------
    tuple of :class:`~.PrecursorInfo` and str
        The precursor and the title read from the file, if any
    """
    lines = iter(lines)
    tokenizer = _resume_record(lines, dialect, source_file, title)
    for line in lines:
        line = line.strip()
        kind = dialect.classify(line)
        if kind not in (LineKind.key, LineKind.comment, LineKind.blank):
            break
        tokenizer.feed(line)
    return tokenizer.precursor(), tokenizer.current_title
