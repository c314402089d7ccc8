import os

from typing import Iterator, List, Optional, Type, Union

from mgftools import surgeon
from mgftools.defaults import ChargeRangePreferences
from mgftools.index import FileIndex
from mgftools.progress import ProgressSink
from mgftools.spectrum import PrecursorInfo, SpectrumRecord
from mgftools.backends import guess_implementation, SpectralFileBackendBase, FormatInferenceFailure


class SpectrumFile:
    """
    Read, index, search through and repair a peak list file.

    This type will attempt to infer the correct reader from the file's
    extension or first lines, but may need to be explicitly prompted if
    there are ambiguities.

    Attributes
    ----------
    filename: str
        A location on the local file system where the peak list is stored
    format : str
        The name of the format of the file
    backend: :class:`~.SpectralFileBackendBase`
        The implementation used to parse the file

    Parameters
    ----------
    filename : str or os.PathLike
        The path of the file to read
    format : str or Type[:class:`~.SpectralFileBackendBase`], optional
        The name of the format or the backend type to use
    create_index : bool
        Whether to scan the file and build its index right away, and rebuild
        it after every rewrite. Otherwise the index is built the first time
        random access is needed.
    """

    backend: SpectralFileBackendBase
    filename: str
    _create_index: bool

    def __init__(self, filename: Union[str, os.PathLike],
                 format: Optional[Union[str, Type[SpectralFileBackendBase]]] = None,
                 create_index: bool = False):
        self.filename = os.fspath(filename)
        self._create_index = create_index
        self.backend = self._init_backend(format)

    def _init_backend(self, format) -> SpectralFileBackendBase:
        if format is None:
            return guess_implementation(self.filename, create_index=self._create_index)
        if callable(format):
            backend_type = format
        else:
            backend_type = SpectralFileBackendBase.type_for_format(format)
        if backend_type is None:
            raise FormatInferenceFailure(
                f"Could not find an implementation for {format}")
        return backend_type(self.filename, create_index=self._create_index)

    def __repr__(self):
        return f"{self.__class__.__name__}(filename={self.filename!r}, backend={self.backend.__class__.__name__})"

    @classmethod
    def supported_file_extensions(cls) -> List[str]:
        return list(SpectralFileBackendBase._file_extension_to_implementation)

    @property
    def format(self) -> str:
        return self.backend.format_name

    @property
    def dialect(self):
        return self.backend.dialect

    @property
    def index(self) -> Optional[FileIndex]:
        """The current index of the file, if one was built"""
        return self.backend.index

    def create_index(self, progress: Optional[ProgressSink] = None) -> FileIndex:
        """Scan the file and build its :class:`~.FileIndex`"""
        return self.backend.create_index(progress)

    def read(self) -> Iterator[SpectrumRecord]:
        """
        Create a sequential iterator over the records of the file.

        Yields
        ------
        :class:`~.SpectrumRecord`
        """
        return self.backend.read()

    def __iter__(self):
        return self.read()

    def __len__(self):
        return len(self.backend)

    def __getitem__(self, i: Union[int, str]) -> SpectrumRecord:
        return self.backend[i]

    def __contains__(self, title: str) -> bool:
        index = self.index
        if index is None:
            index = self.create_index()
        return title in index.title_numbers

    def get_spectrum(self, spectrum_number: Optional[int] = None,
                     spectrum_title: Optional[str] = None) -> SpectrumRecord:
        """
        Retrieve a single spectrum by its position or by its title

        Parameters
        ----------
        spectrum_number : int, optional
            The 0-based position of the spectrum in the file
        spectrum_title : str, optional
            The deduplicated title of the spectrum

        Returns
        -------
        :class:`~.SpectrumRecord`
        """
        return self.backend.get_spectrum(spectrum_number, spectrum_title)

    def get_precursor(self, spectrum_number: Optional[int] = None,
                      spectrum_title: Optional[str] = None) -> PrecursorInfo:
        """Retrieve the precursor of a single spectrum by its position or by its title"""
        return self.backend.get_precursor(spectrum_number, spectrum_title)

    #### File repair. Each rewrite makes the current index stale.
    def _after_rewrite(self, completed: bool) -> bool:
        if completed:
            self.backend.index = None
            if self._create_index:
                self.backend.create_index()
        return completed

    def remove_duplicate_titles(self, progress: Optional[ProgressSink] = None) -> bool:
        return self._after_rewrite(
            surgeon.remove_duplicate_titles(self.filename, self.dialect, progress))

    def rename_duplicate_titles(self, progress: Optional[ProgressSink] = None) -> bool:
        return self._after_rewrite(
            surgeon.rename_duplicate_titles(self.filename, self.dialect, progress))

    def add_missing_spectrum_titles(self, progress: Optional[ProgressSink] = None) -> bool:
        return self._after_rewrite(
            surgeon.add_missing_spectrum_titles(self.filename, self.dialect, progress))

    def add_missing_precursor_charges(self, preferences: Optional[ChargeRangePreferences] = None,
                                      progress: Optional[ProgressSink] = None) -> bool:
        return self._after_rewrite(
            surgeon.add_missing_precursor_charges(self.filename, preferences, self.dialect, progress))

    def remove_zero_intensity_peaks(self, progress: Optional[ProgressSink] = None) -> bool:
        return self._after_rewrite(
            surgeon.remove_zero_intensity_peaks(self.filename, self.dialect, progress))

    def split(self, max_spectra_per_part: int, progress: Optional[ProgressSink] = None) -> List[FileIndex]:
        """
        Split the file into parts of at most ``max_spectra_per_part`` spectra.

        Returns
        -------
        list of :class:`~.FileIndex`
            The index of each part
        """
        return surgeon.split_file(self.filename, max_spectra_per_part, self.dialect, progress)
