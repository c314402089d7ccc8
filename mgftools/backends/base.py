import os
import abc
import logging

from typing import Dict, Iterator, Optional, Type, Union

from mgftools import const
from mgftools.index import FileIndex, IndexAccumulator, TitleRegistry
from mgftools.progress import ProgressSink, NullProgress
from mgftools.spectrum import PrecursorInfo, SpectrumRecord
from mgftools.utils import FormatError

from .dialect import Dialect, LineKind
from .fields import parse_charges, parse_peak_line, parse_precursor, parse_retention_time
from .tokenizer import decode_title_or_raw, iter_spectra, read_open_precursor, read_open_record
from .utils import open_stream, iter_lines, iter_lines_with_offsets


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class FormatInferenceFailure(ValueError):
    """Indicates that we failed to infer the format type for a spectrum file"""


class SubclassRegisteringMetaclass(abc.ABCMeta):
    def __new__(mcs, name, parents, attrs):
        new_type = abc.ABCMeta.__new__(mcs, name, parents, attrs)
        if not hasattr(new_type, "_file_extension_to_implementation"):
            new_type._file_extension_to_implementation = dict()
        if not hasattr(new_type, "_format_name_to_implementation"):
            new_type._format_name_to_implementation = dict()

        dialect = attrs.get("dialect")
        if dialect is not None:
            for extension in dialect.extensions:
                new_type._file_extension_to_implementation[extension] = new_type

        format_name = attrs.get("format_name")
        if format_name is not None:
            new_type._format_name_to_implementation[format_name] = new_type
        return new_type

    def type_for_format(cls, format_or_extension: str) -> Optional[Type['SpectralFileBackendBase']]:
        """Look up a backend by its format name or one of its file extensions"""
        key = format_or_extension.lower().lstrip(".")
        return cls._format_name_to_implementation.get(
            key, cls._file_extension_to_implementation.get(key))


class SpectralFileBackendBase(metaclass=SubclassRegisteringMetaclass):
    """
    A base class for peak list file readers.

    A backend reads records sequentially with :meth:`read`, scans the file
    once to build a :class:`~.FileIndex` with :meth:`create_index`, and then
    reads single records by byte offset with :meth:`fetch_spectrum` and
    :meth:`fetch_precursor`, or by title or position with :meth:`get_spectrum`
    and :meth:`get_precursor`.

    Attributes
    ----------
    filename : str
        The path of the file
    index : :class:`~.FileIndex` or None
        The most recently built index
    dialect : :class:`~.Dialect`
        The line grammar of the format
    """

    file_format = None
    format_name = None
    dialect: Dialect = None

    filename: str
    index: Optional[FileIndex]

    _file_extension_to_implementation: Dict[str, Type['SpectralFileBackendBase']]
    _format_name_to_implementation: Dict[str, Type['SpectralFileBackendBase']]

    def __init__(self, filename: Union[str, os.PathLike], create_index: bool = False):
        self.filename = os.fspath(filename)
        self.index = None
        if create_index:
            self.create_index()

    @classmethod
    def guess_from_filename(cls, filename: Union[str, os.PathLike]) -> bool:
        """
        Guess if the file is of this type by inspecting the file's name and extension.

        Parameters
        ----------
        filename : str
            The path to the file to inspect.

        Returns
        -------
        bool:
            Whether this is an appropriate backend for that file.
        """
        if cls.dialect is None:
            return False
        filename = os.fspath(filename)
        if filename.endswith(".gz"):
            filename = filename[:-3]
        extension = os.path.splitext(filename)[1].lower().lstrip(".")
        return extension in cls.dialect.extensions

    @classmethod
    def guess_from_header(cls, filename: Union[str, os.PathLike]) -> bool:
        """
        Guess if the file is of this type by inspecting the file's header section

        Parameters
        ----------
        filename : str
            The path to the file to open.

        Returns
        -------
        bool:
            Whether this is an appropriate backend for that file.
        """
        return False

    @property
    def source_name(self) -> str:
        """The base name of the file"""
        return os.path.basename(self.filename)

    def _open(self):
        return open_stream(self.filename)

    def read(self) -> Iterator[SpectrumRecord]:
        """
        Create a sequential iterator over the records of the file.

        Titles are deduplicated as they would be in the index.

        Yields
        ------
        :class:`~.SpectrumRecord`
        """
        with self._open() as stream:
            yield from iter_spectra(iter_lines(stream), self.dialect, self.source_name, TitleRegistry())

    def __iter__(self):
        return self.read()

    def create_index(self, progress: Optional[ProgressSink] = None) -> FileIndex:
        """
        Scan the whole file once and build a :class:`~.FileIndex`.

        Unlike sequential reading, the scan is strict: an unparsable
        retention time aborts it.

        Parameters
        ----------
        progress : :class:`~.ProgressSink`, optional
            Receives the percentage of bytes scanned. When it reports a
            cancellation, the scan stops at the next record boundary and
            the partial index is returned.

        Returns
        -------
        :class:`~.FileIndex`

        Raises
        ------
        FormatError
            If a charge, precursor or retention time cannot be parsed.
        """
        if progress is None:
            progress = NullProgress()
        filename = self.filename
        dialect = self.dialect
        file_size = os.path.getsize(filename)
        accumulator = IndexAccumulator(filename, os.path.getmtime(filename))

        progress.set_indeterminate(False)
        progress.set_maximum(100)
        percent = 0

        logger.debug(f"Reading {filename} ({file_size} bytes)...")
        inside = False
        line_start = 0
        with self._open() as stream:
            for line, offset in iter_lines_with_offsets(stream):
                start, line_start = line_start, offset
                line = line.strip()
                kind = dialect.classify(line)
                if kind is LineKind.begin:
                    if inside:
                        accumulator.end_record()
                    if progress.is_cancelled():
                        logger.info("Indexing of %s cancelled after %d spectra", filename, accumulator.spectrum_count)
                        break
                    #### The fetcher has to re-read an opening line carrying the title
                    accumulator.begin_record(start if dialect.title_on_begin_line else offset)
                    inside = True
                    if dialect.title_on_begin_line:
                        title = dialect.title_from_begin(line)
                        if title is not None:
                            accumulator.add_title(title)
                            charges = dialect.charges_from_title(title)
                            if charges:
                                accumulator.add_charges(charges)
                    #### Report every now and then
                    if accumulator.spectrum_count and accumulator.spectrum_count % 10000 == 0:
                        logger.info(
                            f"... Indexed  {offset} bytes, {accumulator.spectrum_count} spectra read"
                        )
                    if file_size:
                        current = min(offset * 100 // file_size, 100)
                        if current != percent:
                            percent = current
                            progress.set_current(percent)
                    continue
                if not inside:
                    continue
                if kind is LineKind.end:
                    accumulator.end_record()
                    inside = False
                elif kind is LineKind.key:
                    key, value = dialect.split_key(line)
                    for field_name, field_value in dialect.expand(key, value):
                        self._index_field(accumulator, field_name, field_value)
                elif kind is LineKind.other:
                    for _mz, intensity in parse_peak_line(line, dialect.peak_separator):
                        accumulator.add_peak(intensity)
        index = accumulator.build()
        progress.set_current(100)
        logger.debug(f"Processed {filename}, {index.spectrum_count} spectra read")
        self.index = index
        return index

    def _index_field(self, accumulator: IndexAccumulator, field_name: str, value: str):
        try:
            if field_name == const.TITLE_FIELD:
                accumulator.add_title(decode_title_or_raw(self.dialect, value, self.source_name))
            elif field_name == const.CHARGE_FIELD:
                accumulator.add_charges(parse_charges(value))
            elif field_name == const.PRECURSOR_FIELD:
                mz, intensity = parse_precursor(value, accumulator.current_title)
                accumulator.add_precursor(mz, intensity)
            elif field_name == const.RETENTION_TIME_FIELD:
                retention_time = parse_retention_time(value, accumulator.current_title)
                if retention_time is not None:
                    accumulator.add_retention_time(retention_time)
        except FormatError as err:
            raise err.add_context(accumulator.current_title, self.source_name)

    def fetch_spectrum(self, offset: int, title: Optional[str] = None) -> SpectrumRecord:
        """
        Read the record stored at ``offset``.

        Parameters
        ----------
        offset : int
            The byte offset of the record as stored in the index. This is
            just past the record's opening line, or at the opening line for
            dialects which carry the title on it.
        title : str, optional
            The title to give the record, typically the deduplicated title
            stored in the index. Charges embedded in a title are always read
            from the file.

        Returns
        -------
        :class:`~.SpectrumRecord`

        Raises
        ------
        FormatError
            If the file ends before the record is closed, or no record opens
            at ``offset``.
        """
        with self._open() as stream:
            stream.seek(offset)
            return read_open_record(iter_lines(stream), self.dialect, self.source_name, title)

    def fetch_precursor(self, offset: int, title: Optional[str] = None) -> PrecursorInfo:
        """
        Read only the precursor description of the record stored at ``offset``.

        Returns
        -------
        :class:`~.PrecursorInfo`
        """
        with self._open() as stream:
            stream.seek(offset)
            precursor, _title = read_open_precursor(iter_lines(stream), self.dialect, self.source_name, title)
            return precursor

    def _requires_index(self) -> FileIndex:
        if self.index is None:
            self.create_index()
        return self.index

    def _resolve(self, spectrum_number: Optional[int] = None, spectrum_title: Optional[str] = None):
        # keep the two branches separate for the possibility that this is not
        # possible with all index schemes.
        index = self._requires_index()
        if spectrum_number is not None:
            if spectrum_title is not None:
                raise ValueError("Provide only one of spectrum_number or spectrum_title")
            index_record = index.record_for(spectrum_number)
        elif spectrum_title is not None:
            index_record = index.record_for(spectrum_title)
        else:
            raise ValueError("Must provide either spectrum_number or spectrum_title argument")
        return index_record

    def get_spectrum(self, spectrum_number: Optional[int] = None,
                     spectrum_title: Optional[str] = None) -> SpectrumRecord:
        """
        Retrieve a single record by its position or by its title.

        Parameters
        ----------
        spectrum_number : int, optional
            The 0-based position of the record in the file
        spectrum_title : str, optional
            The deduplicated title of the record

        Returns
        -------
        :class:`~.SpectrumRecord`
        """
        index_record = self._resolve(spectrum_number, spectrum_title)
        return self.fetch_spectrum(index_record.offset, index_record.name)

    def get_precursor(self, spectrum_number: Optional[int] = None,
                      spectrum_title: Optional[str] = None) -> PrecursorInfo:
        """Retrieve the precursor of a single record by its position or by its title"""
        index_record = self._resolve(spectrum_number, spectrum_title)
        return self.fetch_precursor(index_record.offset, index_record.name)

    def __len__(self):
        return len(self._requires_index())

    def __getitem__(self, i: Union[int, str]) -> SpectrumRecord:
        if isinstance(i, str):
            return self.get_spectrum(spectrum_title=i)
        return self.get_spectrum(spectrum_number=i)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.filename!r})"


def guess_implementation(filename: Union[str, os.PathLike], **kwargs) -> SpectralFileBackendBase:
    """
    Guess the backend implementation to use with this file format.

    Parameters
    ----------
    filename : str or os.PathLike
        The path to the peak list file to open.
    **kwargs
        Passed to the implementation

    Returns
    -------
    SpectralFileBackendBase
    """
    filename = os.fspath(filename)
    for _, impl in SpectralFileBackendBase._file_extension_to_implementation.items():
        if impl.guess_from_filename(filename):
            return impl(filename, **kwargs)
    for _, impl in SpectralFileBackendBase._file_extension_to_implementation.items():
        if impl.guess_from_header(filename):
            return impl(filename, **kwargs)
    raise FormatInferenceFailure(f"Could not guess backend implementation for {filename}")
