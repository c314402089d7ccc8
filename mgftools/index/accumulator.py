"""
Folding line events into a :class:`~.FileIndex`.

The indexer reports what it sees, one event at a time, to an
:class:`IndexAccumulator`, which keeps the running statistics and hands back
an immutable :class:`~.FileIndex` from :meth:`IndexAccumulator.build`.
"""
import os
import logging

from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple, Union

from mgftools.spectrum import Charge

from .file_index import FileIndex, IndexRecord


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class TitleRegistry:
    """
    Tracks the titles seen in one file and makes repeats unique.

    The first occurrence of a title is kept as is. Later occurrences get a
    ``_<n>`` suffix with ``n`` counting up per title, skipping any candidate
    which is already a title in its own right.

    Attributes
    ----------
    seen : dict
        The final titles, in first-seen order
    duplicate_counts : dict
        For each repeated title, the last suffix number given to a repeat
    """

    seen: Dict[str, None]
    duplicate_counts: Dict[str, int]

    def __init__(self):
        self.seen = {}
        self.duplicate_counts = {}

    def register(self, title: str, filename: Optional[str] = None) -> str:
        """
        Record a title and return the unique title to use for it.

        Parameters
        ----------
        title : str
            The decoded title as read
        filename : str, optional
            The file being read, for logging

        Returns
        -------
        str
        """
        if title in self.seen:
            logger.warning("Spectrum title %r is not unique in %s", title, filename)
            n = self.duplicate_counts.get(title, 0)
            while True:
                n += 1
                candidate = f"{title}_{n}"
                if candidate not in self.seen:
                    break
            self.duplicate_counts[title] = n
            title = candidate
        self.seen[title] = None
        return title

    def __contains__(self, title) -> bool:
        return title in self.seen

    def __len__(self):
        return len(self.seen)


class IndexAccumulator:
    """
    The mutable state of an index scan.

    Parameters
    ----------
    filename : str
        The path of the file being scanned
    modified_time : float, optional
        The modification time of the file when the scan started
    """

    filename: str
    modified_time: Optional[float]
    titles: TitleRegistry

    records: List[IndexRecord]
    title_offsets: Dict[str, int]
    title_numbers: Dict[str, int]
    precursor_mzs: Dict[int, float]

    min_retention_time: Optional[float]
    max_retention_time: Optional[float]
    max_precursor_mz: Optional[float]
    max_precursor_intensity: Optional[float]
    max_charge: int
    max_peak_count: int
    peak_picked: bool
    precursor_charges_missing: bool

    _offset: Optional[int]
    _title: Optional[str]
    _charge_seen: bool
    _peak_count: int
    _open: bool

    def __init__(self, filename: str, modified_time: Optional[float] = None):
        self.filename = filename
        self.modified_time = modified_time
        self.titles = TitleRegistry()

        self.records = []
        self.title_offsets = {}
        self.title_numbers = {}
        self.precursor_mzs = {}

        self.min_retention_time = None
        self.max_retention_time = None
        self.max_precursor_mz = None
        self.max_precursor_intensity = None
        self.max_charge = 0
        self.max_peak_count = 0
        self.peak_picked = True
        self.precursor_charges_missing = False

        self._offset = None
        self._title = None
        self._charge_seen = False
        self._peak_count = 0
        self._open = False

    @property
    def spectrum_count(self) -> int:
        return len(self.records)

    @property
    def current_number(self) -> int:
        return len(self.records) - 1

    @property
    def current_title(self) -> Optional[str]:
        return self._title

    def begin_record(self, offset: int):
        """Start a record whose body begins at byte ``offset``"""
        if self._open:
            self.end_record()
        self.records.append(IndexRecord(len(self.records), offset, None))
        self._offset = offset
        self._title = None
        self._charge_seen = False
        self._peak_count = 0
        self._open = True

    def add_title(self, title: str) -> str:
        """
        Register the title of the open record.

        Only the first title of a record is kept.

        Returns
        -------
        str
            The unique title stored for the record
        """
        if self._title is not None:
            return self._title
        title = self.titles.register(title, os.path.basename(self.filename))
        number = self.current_number
        self._title = title
        self.records[number] = self.records[number]._replace(name=title)
        self.title_offsets[title] = self._offset
        self.title_numbers[title] = number
        return title

    def add_charges(self, charges: Iterable[Charge]):
        for charge in charges:
            if charge.value > self.max_charge:
                self.max_charge = charge.value
        self._charge_seen = True

    def add_precursor(self, mz: float, intensity: Optional[float] = None):
        if self.max_precursor_mz is None or mz > self.max_precursor_mz:
            self.max_precursor_mz = mz
        if intensity is not None:
            if self.max_precursor_intensity is None or intensity > self.max_precursor_intensity:
                self.max_precursor_intensity = intensity
        self.precursor_mzs[self.current_number] = mz

    def _add_time(self, value: float):
        if self.min_retention_time is None or value < self.min_retention_time:
            self.min_retention_time = value
        if self.max_retention_time is None or value > self.max_retention_time:
            self.max_retention_time = value

    def add_retention_time(self, value: Union[float, Tuple[float, float]]):
        if isinstance(value, tuple):
            for bound in value:
                self._add_time(bound)
        else:
            self._add_time(value)

    def add_peak(self, intensity: float):
        self._peak_count += 1
        if intensity == 0:
            self.peak_picked = False

    def end_record(self):
        """Close the open record and fold its statistics into the file statistics"""
        if not self._open:
            return
        if self._peak_count > self.max_peak_count:
            self.max_peak_count = self._peak_count
        if not self._charge_seen:
            self.precursor_charges_missing = True
        self._open = False

    def build(self) -> FileIndex:
        """
        Produce the immutable index of everything seen so far.

        Returns
        -------
        :class:`~.FileIndex`
        """
        self.end_record()
        return FileIndex(
            filename=self.filename,
            modified_time=self.modified_time,
            records=tuple(self.records),
            titles=tuple(self.titles.seen),
            duplicate_counts=MappingProxyType(dict(self.titles.duplicate_counts)),
            title_offsets=MappingProxyType(dict(self.title_offsets)),
            title_numbers=MappingProxyType(dict(self.title_numbers)),
            precursor_mzs=MappingProxyType(dict(self.precursor_mzs)),
            min_retention_time=self.min_retention_time if self.min_retention_time is not None else 0.0,
            max_retention_time=self.max_retention_time,
            max_precursor_mz=self.max_precursor_mz,
            max_precursor_intensity=self.max_precursor_intensity,
            max_charge=self.max_charge,
            max_peak_count=self.max_peak_count,
            peak_picked=self.peak_picked,
            precursor_charges_missing=self.precursor_charges_missing,
        )
