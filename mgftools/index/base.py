"""Lookup behavior shared by spectrum file indices"""
from typing import Iterator, List, Mapping, Optional, Sequence, Union


class IndexRecordBase:
    """
    The shape of one index entry

    Attributes
    ----------
    number : int
        The 0-based sequential position of the record in the file
    offset : int
        The byte offset of the record: just past its opening line, or at the
        opening line itself when that line carries the title
    name : str, optional
        The deduplicated title of the record, if it has one
    """

    __slots__ = ()

    number: int
    offset: int
    name: Optional[str]


class IndexBase:
    """
    Resolves spectrum titles and sequential positions to index entries.

    Subclasses provide :attr:`records`, every entry in file order, and
    :attr:`title_numbers`, which maps each title to its position. Strings
    are always looked up as titles and integers as positions.
    """

    records: Sequence[IndexRecordBase]
    title_numbers: Mapping[str, int]

    def search(self, key: Union[str, int, slice]) -> Union[IndexRecordBase, List[IndexRecordBase]]:
        """
        Find one entry by title or position, or a run of entries by slice.

        Raises
        ------
        KeyError
            If no record has the title
        IndexError
            If the position is out of range
        """
        if isinstance(key, str):
            return self.records[self.title_numbers[key]]
        if isinstance(key, slice):
            return list(self.records[key])
        if key < 0:
            raise IndexError(f"Spectrum number {key} is negative")
        return self.records[key]

    def record_for(self, key: Union[str, int]) -> IndexRecordBase:
        if isinstance(key, slice):
            raise TypeError("Only a single title or spectrum number can be resolved to a record")
        return self.search(key)

    def offset_for(self, key: Union[str, int]) -> int:
        """The byte offset stored for the record"""
        return self.record_for(key).offset

    def number_for(self, title: str) -> int:
        """The 0-based position of the record with ``title``"""
        return self.title_numbers[title]

    def iter_spectra(self) -> Iterator[IndexRecordBase]:
        return iter(self.records)

    def __iter__(self):
        return self.iter_spectra()

    def __len__(self):
        return len(self.records)

    def __getitem__(self, key: Union[str, int, slice]):
        return self.search(key)

    def __contains__(self, key) -> bool:
        if isinstance(key, str):
            return key in self.title_numbers
        if isinstance(key, int):
            return 0 <= key < len(self.records)
        return False

    def check_names_unique(self) -> bool:
        """
        Check that no two titled records share a title.

        Returns
        -------
        bool
        """
        titles = [record.name for record in self.records if record.name is not None]
        return len(titles) == len(set(titles))
