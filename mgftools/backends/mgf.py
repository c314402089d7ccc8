from .base import SpectralFileBackendBase
from .dialect import MGF
from .utils import open_stream, iter_lines


class MGFSpectrumFile(SpectralFileBackendBase):
    """
    A reader for Mascot Generic Format (MGF) peak lists.

    Records are delimited by ``BEGIN IONS`` and ``END IONS`` lines. Titles
    are URL decoded, and repeated titles are made unique with a ``_<n>``
    suffix both when reading sequentially and in the index. ``KEY=value``
    lines outside of any record are global parameters and are not applied
    to the records.
    """

    file_format = "mgf"
    format_name = "mgf"
    dialect = MGF

    @classmethod
    def guess_from_header(cls, filename: str) -> bool:
        with open_stream(filename) as stream:
            for i, line in enumerate(iter_lines(stream)):
                if cls.dialect.is_begin(line.strip()):
                    return True
                # Global parameters may precede the first record
                if i > 100:
                    break
        return False
