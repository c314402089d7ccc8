"""Plain value types produced by the readers in :mod:`mgftools.backends`"""
import textwrap

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from mgftools.const import PLUS, MINUS, MGF_BEGIN, MGF_END


@dataclass(frozen=True)
class Peak:
    """A single fragment ion peak"""

    mz: float
    intensity: float


@dataclass(frozen=True)
class Charge:
    """
    A precursor charge state hypothesis.

    Attributes
    ----------
    sign : int
        Either :data:`~.PLUS` or :data:`~.MINUS`
    value : int
        The charge magnitude
    """

    sign: int
    value: int

    @property
    def signed_value(self) -> int:
        return self.sign * self.value

    def __str__(self):
        return f"{self.value}{'+' if self.sign == PLUS else '-'}"


@dataclass
class PrecursorInfo:
    """
    The precursor ion a spectrum was acquired from.

    At most one of :attr:`retention_time` and :attr:`retention_time_window` is set.

    Attributes
    ----------
    mz : float, optional
        The precursor m/z
    intensity : float, optional
        The precursor intensity
    charges : list of :class:`Charge`
        The possible charge states of the precursor
    retention_time : float, optional
        A point retention time, in seconds
    retention_time_window : tuple of float, optional
        A ``(start, end)`` retention time window, in seconds
    """

    mz: Optional[float] = None
    intensity: Optional[float] = None
    charges: List[Charge] = field(default_factory=list)
    retention_time: Optional[float] = None
    retention_time_window: Optional[Tuple[float, float]] = None

    @property
    def has_retention_time_window(self) -> bool:
        return self.retention_time_window is not None

    def format_retention_time(self) -> Optional[str]:
        if self.retention_time_window is not None:
            start, end = self.retention_time_window
            return f"{start}-{end}"
        if self.retention_time is not None:
            return str(self.retention_time)
        return None


@dataclass
class SpectrumRecord:
    """
    A single spectrum read from a peak list file.

    Attributes
    ----------
    title : str, optional
        The decoded, deduplicated spectrum title
    scan_number : str, optional
        The scan number(s) as written in the file
    precursor : :class:`PrecursorInfo`
        The precursor description
    peaks : dict[float, :class:`Peak`]
        The peak list keyed by m/z, in file order
    source_file : str, optional
        The base name of the file the spectrum was read from
    """

    title: Optional[str] = None
    scan_number: Optional[str] = None
    precursor: PrecursorInfo = field(default_factory=PrecursorInfo)
    peaks: Dict[float, Peak] = field(default_factory=dict)
    source_file: Optional[str] = None

    def __len__(self):
        return len(self.peaks)

    @property
    def peak_count(self) -> int:
        return len(self.peaks)

    def _sorted_peaks(self) -> List[Peak]:
        return sorted(self.peaks.values(), key=lambda peak: peak.mz)

    @property
    def mz_array(self) -> np.ndarray:
        """The peak m/z values in ascending order"""
        return np.array([peak.mz for peak in self._sorted_peaks()], dtype=np.float64)

    @property
    def intensity_array(self) -> np.ndarray:
        """The peak intensities, aligned with :attr:`mz_array`"""
        return np.array([peak.intensity for peak in self._sorted_peaks()], dtype=np.float64)

    @property
    def total_intensity(self) -> float:
        return float(self.intensity_array.sum())

    def to_mgf(self) -> str:
        """
        Render this spectrum as an MGF block, peaks sorted by m/z.

        Returns
        -------
        str
        """
        lines = [MGF_BEGIN]
        if self.title is not None:
            lines.append(f"TITLE={self.title}")
        precursor = self.precursor
        if precursor.mz is not None:
            if precursor.intensity is not None:
                lines.append(f"PEPMASS={precursor.mz}\t{precursor.intensity}")
            else:
                lines.append(f"PEPMASS={precursor.mz}")
        retention_time = precursor.format_retention_time()
        if retention_time is not None:
            lines.append(f"RTINSECONDS={retention_time}")
        if precursor.charges:
            charges = sorted(precursor.charges, key=lambda charge: charge.signed_value)
            lines.append("CHARGE=" + " and ".join(map(str, charges)))
        if self.scan_number:
            lines.append(f"SCANS={self.scan_number}")
        for peak in self._sorted_peaks():
            lines.append(f"{peak.mz} {peak.intensity}")
        lines.append(MGF_END)
        return "\n".join(lines) + "\n"

    def __repr__(self):  # pragma: no cover
        template = f"{self.__class__.__name__}(title={self.title!r}, scan_number={self.scan_number!r},\n"
        template += textwrap.indent(f"precursor={self.precursor!r},\n", ' ' * 2)
        template += textwrap.indent(f"peaks=<{len(self.peaks)} peaks>, source_file={self.source_file!r})", ' ' * 2)
        return template


__all__ = ["Peak", "Charge", "PrecursorInfo", "SpectrumRecord", "PLUS", "MINUS"]
