from mgftools.spectrum import Peak, Charge, PrecursorInfo, SpectrumRecord
from mgftools.index import FileIndex
from mgftools.utils import FormatError, FileReplacementError
from mgftools.defaults import ChargeRangePreferences
from mgftools.progress import ProgressSink, NullProgress
from mgftools.spectrum_file import SpectrumFile
from mgftools.backends import (
    MGFSpectrumFile,
    MSPSpectrumFile,
    FormatInferenceFailure,
    guess_implementation,
)
