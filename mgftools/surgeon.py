"""
Whole-file rewrites which repair peak list files.

Every operation streams the file into ``<file>_temp`` next to it, applying
its transformation record by record, and then replaces the original with
the rewritten copy. Lines outside of records are copied unchanged, and
every line keeps its own line ending.

Each operation checks its :class:`~.ProgressSink` for cancellation at
record boundaries. A cancelled rewrite removes the temporary file, leaves
the original untouched and returns :const:`False`.

Any :class:`~.FileIndex` built before a rewrite is stale afterwards.
"""
import os
import logging

from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional, Set, Tuple, Union

from mgftools.const import TEMP_SUFFIX, TITLE_FIELD, CHARGE_FIELD
from mgftools.defaults import ChargeRangePreferences
from mgftools.index import FileIndex
from mgftools.progress import ProgressSink, NullProgress
from mgftools.utils import FileReplacementError, FormatError

from mgftools.backends.base import SpectralFileBackendBase
from mgftools.backends.dialect import DIALECTS, Dialect, LineKind, MGF, dialect_for
from mgftools.backends.fields import parse_peak_line
from mgftools.backends.tokenizer import decode_title_or_raw
from mgftools.backends.utils import LINE_ENCODING, LINE_ERRORS


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


DialectLike = Union[Dialect, str, None]
PathLike = Union[str, os.PathLike]


class Block(NamedTuple):
    """
    A run of consecutive lines, either one whole record or the lines between records.

    Attributes
    ----------
    is_record : bool
        Whether the lines form a record, opening line included
    lines : list of str
        The lines, each with its line ending
    """

    is_record: bool
    lines: List[str]


def iter_blocks(lines: Iterable[str], dialect: Dialect = MGF) -> Iterator[Block]:
    """
    Group lines into records and the runs of lines between them.

    For dialects without a closing line, the blank line ending a record
    belongs to that record.
    """
    outside = []
    record = None
    for line in lines:
        kind = dialect.classify(line.strip())
        if record is None:
            if kind is LineKind.begin:
                if outside:
                    yield Block(False, outside)
                    outside = []
                record = [line]
            else:
                outside.append(line)
            continue
        if kind is LineKind.begin:
            yield Block(True, record)
            record = [line]
        elif kind is LineKind.end:
            record.append(line)
            yield Block(True, record)
            record = None
        else:
            record.append(line)
    if record is not None:
        yield Block(True, record)
    if outside:
        yield Block(False, outside)


def line_ending(line: str) -> str:
    """The line ending of ``line``, or the empty string for a final unterminated line"""
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n") or line.endswith("\r"):
        return line[-1]
    return ""


def _byte_length(lines: Iterable[str]) -> int:
    return sum(len(line.encode(LINE_ENCODING, LINE_ERRORS)) for line in lines)


def _resolve_dialect(path: PathLike, dialect: DialectLike = None) -> Dialect:
    if isinstance(dialect, Dialect):
        return dialect
    if dialect is not None:
        return dialect_for(dialect)
    extension = os.path.splitext(os.fspath(path))[1].lower().lstrip(".")
    for candidate in DIALECTS.values():
        if extension in candidate.extensions:
            return candidate
    return MGF


def _open_source(path: PathLike):
    return open(path, "rt", encoding=LINE_ENCODING, errors=LINE_ERRORS, newline="")


def _open_destination(path: PathLike):
    return open(path, "wt", encoding=LINE_ENCODING, errors=LINE_ERRORS, newline="")


def find_title_line(lines: List[str], dialect: Dialect) -> Tuple[Optional[int], Optional[str]]:
    """
    Locate the line carrying the title of a record.

    Returns
    -------
    index : int or None
        The position of the title line in ``lines``
    raw_title : str or None
        The title as written in the file
    """
    if dialect.title_on_begin_line:
        title = dialect.title_from_begin(lines[0].strip())
        if title is None:
            return None, None
        return 0, title
    for i, line in enumerate(lines):
        body = line.strip()
        if dialect.classify(body) is not LineKind.key:
            continue
        key, value = dialect.split_key(body)
        if dialect.fields.get(key) == TITLE_FIELD:
            return i, value
    return None, None


def record_title(lines: List[str], dialect: Dialect) -> Optional[str]:
    """The decoded title of a record, or :const:`None` if it has none"""
    _, raw = find_title_line(lines, dialect)
    if raw is None:
        return None
    return decode_title_or_raw(dialect, raw)


def replace_file(original: PathLike, replacement: PathLike, atomic: bool = False):
    """
    Replace ``original`` with ``replacement``.

    By default the original is deleted and the replacement is then renamed
    into its place. With ``atomic`` set, :func:`os.replace` is used instead.

    Raises
    ------
    FileReplacementError
        If either step fails. When the deletion succeeded but the rename did
        not, :attr:`~.FileReplacementError.original_removed` is set and the
        rewritten content is only available at the replacement path.
    """
    original = os.fspath(original)
    replacement = os.fspath(replacement)
    if atomic:
        try:
            os.replace(replacement, original)
        except OSError as err:
            raise FileReplacementError(
                f"Could not replace {original} with {replacement}: {err}", replacement) from err
        return
    try:
        os.remove(original)
    except OSError as err:
        raise FileReplacementError(
            f"Could not delete {original}, the rewritten file was left at {replacement}: {err}",
            replacement) from err
    try:
        os.rename(replacement, original)
    except OSError as err:
        raise FileReplacementError(
            f"{original} was deleted but {replacement} could not be renamed to take its place: {err}",
            replacement, original_removed=True) from err


def _report(progress: ProgressSink, consumed: int, total: int, percent: int) -> int:
    if total:
        current = min(consumed * 100 // total, 100)
        if current != percent:
            progress.set_current(current)
            return current
    return percent


def _rewrite(path: PathLike, dialect: Dialect, transform: Callable[[List[str]], List[str]],
             progress: Optional[ProgressSink] = None, atomic: bool = False) -> bool:
    path = os.fspath(path)
    if progress is None:
        progress = NullProgress()
    temp_path = path + TEMP_SUFFIX
    total = os.path.getsize(path)
    progress.set_indeterminate(False)
    progress.set_maximum(100)
    consumed = 0
    percent = 0
    cancelled = False
    try:
        with _open_source(path) as source, _open_destination(temp_path) as destination:
            for block in iter_blocks(source, dialect):
                if block.is_record:
                    if progress.is_cancelled():
                        cancelled = True
                        break
                    destination.writelines(transform(block.lines))
                else:
                    destination.writelines(block.lines)
                consumed += _byte_length(block.lines)
                percent = _report(progress, consumed, total, percent)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise
    if cancelled:
        logger.info("Rewrite of %s cancelled, the file was left unchanged", path)
        progress.append_message(f"Cancelled, {path} was left unchanged")
        os.remove(temp_path)
        return False
    replace_file(path, temp_path, atomic=atomic)
    progress.set_current(100)
    return True


def remove_duplicate_titles(path: PathLike, dialect: DialectLike = None,
                            progress: Optional[ProgressSink] = None, atomic: bool = False) -> bool:
    """
    Keep the first record of every title and drop every later record with the same title.

    Titles are compared after decoding. Records without a title are kept.
    Running this twice leaves the file unchanged the second time.

    Returns
    -------
    bool
        :const:`False` if the operation was cancelled
    """
    dialect = _resolve_dialect(path, dialect)
    seen: Set[str] = set()
    removed = 0

    def transform(lines: List[str]) -> List[str]:
        nonlocal removed
        title = record_title(lines, dialect)
        if title is None:
            return lines
        if title in seen:
            removed += 1
            return []
        seen.add(title)
        return lines

    completed = _rewrite(path, dialect, transform, progress, atomic)
    if completed:
        logger.info("Removed %d records with duplicated titles from %s", removed, path)
        if progress is not None:
            progress.append_message(f"Removed {removed} duplicated spectra")
    return completed


def rename_duplicate_titles(path: PathLike, dialect: DialectLike = None,
                            progress: Optional[ProgressSink] = None, atomic: bool = False) -> bool:
    """
    Make every title unique by appending ``" (2)"``, ``" (3)"`` and so on to
    later records sharing a title. Every record is kept.

    Returns
    -------
    bool
        :const:`False` if the operation was cancelled
    """
    dialect = _resolve_dialect(path, dialect)
    seen: Set[str] = set()
    counts = {}
    renamed = 0

    def transform(lines: List[str]) -> List[str]:
        nonlocal renamed
        i, raw = find_title_line(lines, dialect)
        if raw is None:
            return lines
        title = decode_title_or_raw(dialect, raw)
        if title not in seen:
            seen.add(title)
            return lines
        n = counts.get(title, 1)
        while True:
            n += 1
            suffix = f" ({n})"
            if title + suffix not in seen:
                break
        counts[title] = n
        seen.add(title + suffix)
        renamed += 1
        lines = list(lines)
        lines[i] = dialect.format_title_line(raw + suffix) + line_ending(lines[i])
        return lines

    completed = _rewrite(path, dialect, transform, progress, atomic)
    if completed:
        logger.info("Renamed %d records with duplicated titles in %s", renamed, path)
    return completed


def add_missing_spectrum_titles(path: PathLike, dialect: DialectLike = None,
                                progress: Optional[ProgressSink] = None, atomic: bool = False) -> bool:
    """
    Give every record without a title the title ``"Spectrum <n>"``.

    ``n`` starts at the 1-based position of the record and is increased
    until it does not collide with any title seen so far. For MGF the title
    line is inserted right after ``BEGIN IONS``. For MSP the empty name
    line is rewritten.

    Returns
    -------
    bool
        :const:`False` if the operation was cancelled
    """
    dialect = _resolve_dialect(path, dialect)
    seen: Set[str] = set()
    ordinal = 0
    added = 0

    def transform(lines: List[str]) -> List[str]:
        nonlocal ordinal, added
        ordinal += 1
        title = record_title(lines, dialect)
        if title is not None:
            seen.add(title)
            return lines
        n = ordinal
        while f"Spectrum {n}" in seen:
            n += 1
        title = f"Spectrum {n}"
        seen.add(title)
        added += 1
        lines = list(lines)
        ending = line_ending(lines[0])
        if dialect.title_on_begin_line:
            lines[0] = dialect.format_title_line(title) + (ending or "\n")
        else:
            if not ending:
                ending = "\n"
                lines[0] += ending
            lines.insert(1, dialect.format_title_line(title) + ending)
        return lines

    completed = _rewrite(path, dialect, transform, progress, atomic)
    if completed:
        logger.info("Added %d missing titles to %s", added, path)
    return completed


def add_missing_precursor_charges(path: PathLike, preferences: Optional[ChargeRangePreferences] = None,
                                  dialect: DialectLike = None, progress: Optional[ProgressSink] = None,
                                  atomic: bool = False) -> bool:
    """
    Give every record which reaches its first peak without a charge the
    charge range of ``preferences``, e.g. ``CHARGE=2+ and 3+ and 4+``.

    The charge line is inserted right before the first peak line.

    Parameters
    ----------
    preferences : :class:`~.ChargeRangePreferences`, optional
        The charge range to assume. Loaded with
        :meth:`~.ChargeRangePreferences.load` when omitted.

    Returns
    -------
    bool
        :const:`False` if the operation was cancelled
    """
    dialect = _resolve_dialect(path, dialect)
    if preferences is None:
        preferences = ChargeRangePreferences.load()
    charge_line = dialect.format_charge_line(preferences.charges)
    added = 0

    def transform(lines: List[str]) -> List[str]:
        nonlocal added
        charge_seen = bool(dialect.charges_from_title(dialect.title_from_begin(lines[0].strip())))
        for i, line in enumerate(lines[1:], 1):
            body = line.strip()
            kind = dialect.classify(body)
            if kind is LineKind.key:
                key, _value = dialect.split_key(body)
                if dialect.fields.get(key) == CHARGE_FIELD:
                    charge_seen = True
            elif kind is LineKind.other and parse_peak_line(body, dialect.peak_separator):
                if charge_seen:
                    return lines
                added += 1
                lines = list(lines)
                lines.insert(i, charge_line + (line_ending(line) or "\n"))
                return lines
            elif kind is LineKind.end or kind is LineKind.begin:
                break
        return lines

    completed = _rewrite(path, dialect, transform, progress, atomic)
    if completed:
        logger.info("Added precursor charges %s to %d records of %s", charge_line, added, path)
    return completed


def _is_float(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def _zero_peak(block: str) -> bool:
    """Whether ``block`` is a peak of zero intensity. Raises :class:`ValueError` for a bad intensity."""
    values = block.split()
    if len(values) in (2, 3) and _is_float(values[0]):
        return float(values[1]) == 0.0
    return False


def remove_zero_intensity_peaks(path: PathLike, dialect: DialectLike = None,
                                progress: Optional[ProgressSink] = None, atomic: bool = False) -> bool:
    """
    Drop every peak with an intensity of exactly zero.

    Inside a record, a line of two or three whitespace separated fields
    whose first field is a number is a peak line. For dialects with a peak
    separator, each separated block of a line is a peak on its own: zero
    intensity blocks are cut out of the line, and the line is dropped once
    no peak is left on it.

    Returns
    -------
    bool
        :const:`False` if the operation was cancelled

    Raises
    ------
    FormatError
        If the intensity of a peak is not a number. The original file
        is left untouched.
    """
    dialect = _resolve_dialect(path, dialect)
    source_name = os.path.basename(os.fspath(path))
    separator = dialect.peak_separator
    removed = 0

    def transform(lines: List[str]) -> List[str]:
        nonlocal removed
        kept = []
        for line in lines:
            content = line.rstrip("\r\n")
            if dialect.classify(content.strip()) is not LineKind.other:
                kept.append(line)
                continue
            if separator is not None and separator in content:
                blocks = content.split(separator)
            else:
                blocks = [content]
            try:
                zeros = [_zero_peak(block) for block in blocks]
            except ValueError:
                raise FormatError(
                    "Cannot parse peak intensity", raw=content.strip(),
                    title=record_title(lines, dialect), filename=source_name) from None
            if not any(zeros):
                kept.append(line)
                continue
            removed += sum(zeros)
            remaining = [block for block, zero in zip(blocks, zeros) if not zero]
            if len(blocks) == 1 or not any(block.strip() for block in remaining):
                continue
            #### Keep the separator layout, including a trailing separator
            kept.append(separator.join(remaining).lstrip() + line[len(content):])
        return kept

    completed = _rewrite(path, dialect, transform, progress, atomic)
    if completed:
        logger.info("Removed %d zero intensity peaks from %s", removed, path)
    return completed


def part_path(path: PathLike, number: int) -> str:
    """The path of the ``number``-th part of a split, ``<stem>_<number><ext>``"""
    stem, extension = os.path.splitext(os.fspath(path))
    return f"{stem}_{number}{extension}"


def split_file(path: PathLike, max_spectra_per_part: int, dialect: DialectLike = None,
               progress: Optional[ProgressSink] = None) -> List[FileIndex]:
    """
    Split a file into parts of at most ``max_spectra_per_part`` records.

    A new part is only started when the rest of the file is larger than
    half of the current part, so the last part is never tiny. The original
    file is left in place.

    Parameters
    ----------
    path : str
        The file to split
    max_spectra_per_part : int
        The largest number of records in one part
    dialect : :class:`~.Dialect` or str, optional
        The line grammar. Inferred from the extension when omitted.

    Returns
    -------
    list of :class:`~.FileIndex`
        The index of each part written. When cancelled, only the parts
        written so far.

    Raises
    ------
    ValueError
        If the file extension is not one of the dialect's, or
        ``max_spectra_per_part`` is not positive.
    """
    path = os.fspath(path)
    extension = os.path.splitext(path)[1].lower().lstrip(".")
    if dialect is None:
        dialects = [candidate for candidate in DIALECTS.values() if extension in candidate.extensions]
        if not dialects:
            raise ValueError(f"Cannot split {path}, unsupported file extension {extension!r}")
        dialect = dialects[0]
    else:
        dialect = _resolve_dialect(path, dialect)
        if extension not in dialect.extensions:
            raise ValueError(f"Cannot split {path} as {dialect.name}, unsupported file extension {extension!r}")
    if max_spectra_per_part < 1:
        raise ValueError(f"max_spectra_per_part must be positive, got {max_spectra_per_part}")
    if progress is None:
        progress = NullProgress()

    total = os.path.getsize(path)
    progress.set_indeterminate(False)
    progress.set_maximum(100)
    percent = 0

    parts = [part_path(path, 1)]
    consumed = 0
    part_bytes = 0
    count = 0
    cancelled = False
    with _open_source(path) as source:
        destination = _open_destination(parts[-1])
        try:
            for block in iter_blocks(source, dialect):
                size = _byte_length(block.lines)
                if block.is_record:
                    if progress.is_cancelled():
                        cancelled = True
                        break
                    count += 1
                    if count > max_spectra_per_part and total - consumed > part_bytes / 2:
                        destination.close()
                        parts.append(part_path(path, len(parts) + 1))
                        logger.debug("Starting part %s", parts[-1])
                        destination = _open_destination(parts[-1])
                        part_bytes = 0
                        count = 1
                destination.writelines(block.lines)
                part_bytes += size
                consumed += size
                percent = _report(progress, consumed, total, percent)
        finally:
            destination.close()
    if cancelled:
        logger.info("Splitting of %s cancelled after %d parts", path, len(parts))
        progress.append_message(f"Cancelled after writing {len(parts)} parts")

    backend_type = SpectralFileBackendBase.type_for_format(dialect.name)
    indices = []
    for part in parts:
        progress.append_message(f"Indexing {os.path.basename(part)}")
        indices.append(backend_type(part).create_index())
    logger.info("Split %s into %d parts", path, len(parts))
    return indices
