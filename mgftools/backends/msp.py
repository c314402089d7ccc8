from .base import SpectralFileBackendBase
from .dialect import MSP, LEADER_TERMS_PATTERN
from .utils import open_stream, decode_line


class MSPSpectrumFile(SpectralFileBackendBase):
    """
    A reader for the plain text NIST MSP format.

    The MSP format is only roughly defined. A record opens with a ``Name:``
    (or ``Compound:``) line which carries its title, and is closed by a
    blank line, by the next opening line or by the end of the file. The
    precursor m/z, the scan number and the retention time may be given as
    keys of their own or as ``key=value`` items of the ``Comment`` line,
    and the charge may be appended to the name as ``/<charge>``.

    Titles are not URL decoded.
    """

    file_format = "msp"
    format_name = "msp"
    dialect = MSP

    @classmethod
    def guess_from_header(cls, filename: str) -> bool:
        with open_stream(filename) as stream:
            first_line = decode_line(stream.readline())
            if LEADER_TERMS_PATTERN.match(first_line):
                return True
        return False
