"""The immutable result of scanning a spectrum file"""
import os

from dataclasses import dataclass
from typing import Mapping, NamedTuple, Optional, Tuple

from .base import IndexBase


class IndexRecord(NamedTuple):
    """
    A single entry of a :class:`FileIndex`

    Attributes
    ----------
    number : int
        The 0-based sequential position of the record in the file
    offset : int
        The byte offset of the record: just past its opening line, or at the
        opening line itself when that line carries the title
    name : str, optional
        The deduplicated title of the record
    """

    number: int
    offset: int
    name: Optional[str]


@dataclass(frozen=True, eq=False)
class FileIndex(IndexBase):
    """
    A point-in-time snapshot of the records of one file and their statistics.

    A :class:`FileIndex` is never updated. Any rewrite of the file makes it
    stale, and a new one must be built.

    Attributes
    ----------
    filename : str
        The path of the indexed file
    modified_time : float
        The modification time of the file when it was scanned
    records : tuple of :class:`IndexRecord`
        One entry per record, in file order, including records without a title
    titles : tuple of str
        The deduplicated titles in first-seen order
    duplicate_counts : Mapping[str, int]
        For each title seen more than once, the last suffix number given to a repeat
    title_offsets : Mapping[str, int]
        Title to byte offset
    title_numbers : Mapping[str, int]
        Title to 0-based sequential position
    precursor_mzs : Mapping[int, float]
        Sequential position to precursor m/z
    min_retention_time : float
        The smallest retention time seen, or 0 when none was seen
    max_retention_time : float, optional
    max_precursor_mz : float, optional
    max_precursor_intensity : float, optional
    max_charge : int
        The largest charge magnitude seen
    max_peak_count : int
        The largest number of peaks in one record
    peak_picked : bool
        :const:`False` as soon as one zero intensity peak was seen
    precursor_charges_missing : bool
        :const:`True` as soon as one record had no charge
    """

    filename: str
    modified_time: Optional[float]
    records: Tuple[IndexRecord, ...]
    titles: Tuple[str, ...]
    duplicate_counts: Mapping[str, int]
    title_offsets: Mapping[str, int]
    title_numbers: Mapping[str, int]
    precursor_mzs: Mapping[int, float]
    min_retention_time: float = 0.0
    max_retention_time: Optional[float] = None
    max_precursor_mz: Optional[float] = None
    max_precursor_intensity: Optional[float] = None
    max_charge: int = 0
    max_peak_count: int = 0
    peak_picked: bool = True
    precursor_charges_missing: bool = False

    @property
    def name(self) -> str:
        return os.path.basename(self.filename)

    @property
    def spectrum_count(self) -> int:
        return len(self.records)

    @property
    def has_duplicate_titles(self) -> bool:
        return bool(self.duplicate_counts)

    def title_for(self, number: int) -> Optional[str]:
        """The deduplicated title of the record at ``number``"""
        return self.records[number].name

    def precursor_mz_for(self, number: int) -> Optional[float]:
        """The precursor m/z of the record at ``number``, if one was given"""
        return self.precursor_mzs.get(number)

    def is_stale(self) -> bool:
        """Whether the file was modified since it was indexed"""
        try:
            return os.path.getmtime(self.filename) != self.modified_time
        except OSError:
            return True

    def __repr__(self):
        return (f"{self.__class__.__name__}({self.filename!r}, spectrum_count={self.spectrum_count}, "
                f"titles={len(self.titles)}, duplicates={len(self.duplicate_counts)})")
