"""
File Format Backends
--------------------

"""

from .mgf import MGFSpectrumFile
from .msp import MSPSpectrumFile
from .dialect import Dialect, LineKind, MGF, MSP, dialect_for
from .tokenizer import SpectrumTokenizer, iter_spectra
from .base import (
    guess_implementation,
    SpectralFileBackendBase,
    FormatInferenceFailure,
)
