"""Pytest configuration for mgftools tests.

Provides small MGF and MSP documents and a factory writing them into a
temporary directory.
"""
import pytest


MGF_DOCUMENT = """MASS=Monoisotopic
BEGIN IONS
TITLE=first%20spectrum
PEPMASS=500.25 1000
CHARGE=2+
RTINSECONDS=120.5
SCANS=10
100.0 10.0
200.0 20.0
END IONS

BEGIN IONS
TITLE=second
PEPMASS=600.5
CHARGE=2+ and 3+
RTINSECONDS=30-40
150.0 0.0
250.0 5.0
300.0 7.5
END IONS

BEGIN IONS
TITLE=first%20spectrum
PEPMASS=700.0
110.0 1.0
END IONS
"""


PLAIN_MGF_DOCUMENT = """BEGIN IONS
TITLE=scan=1
PEPMASS=412.7 3500.0
CHARGE=2+
RTINSECONDS=15.2
101.5 12.0
202.25 40.0
303.125 8.0
END IONS
BEGIN IONS
TITLE=scan=2
PEPMASS=522.3
CHARGE=3+
RTINSECONDS=16.8
110.0 5.0
220.0 15.0
END IONS
"""


MSP_DOCUMENT = """Name: AAAK/2
MW: 403.2
Comment: Parent=202.6 Scan=17 RetentionTime=33.5 Mods=0 "Protein=sp|P1 thing"
Num peaks: 3
100.1\t10\t"b1"
200.2\t20\t"y1"
300.3\t0\t"?"

Name: CCCR/3
PrecursorMZ: 150.3
Num peaks: 2
110.0 5; 120.0 6;

Name: AAAK/2
Charge: 4
Comment: Parent=202.6
Num peaks: 1
100.0 1
"""


@pytest.fixture
def write_file(tmp_path):
    """Factory writing ``content`` to ``name`` in a temporary directory and returning the path as a string"""

    def writer(content: str, name: str = "spectra.mgf", newline: str = "\n") -> str:
        path = tmp_path / name
        path.write_bytes(content.replace("\n", newline).encode("utf8"))
        return str(path)

    return writer


@pytest.fixture
def mgf_path(write_file):
    return write_file(MGF_DOCUMENT)


@pytest.fixture
def plain_mgf_path(write_file):
    return write_file(PLAIN_MGF_DOCUMENT, "plain.mgf")


@pytest.fixture
def msp_path(write_file):
    return write_file(MSP_DOCUMENT, "library.msp")


def record_offsets(content: str, opening: str = "BEGIN IONS", at_line: bool = False) -> list:
    """The byte offsets just past every opening line of ``content``, or of the lines themselves"""
    data = content.encode("utf8")
    offsets = []
    position = 0
    while True:
        start = data.find(opening.encode("utf8"), position)
        if start == -1:
            break
        end = data.index(b"\n", start) + 1
        offsets.append(start if at_line else end)
        position = end
    return offsets


class CancelAfter:
    """A progress sink which reports a cancellation after ``n`` checks"""

    def __init__(self, n: int):
        self.n = n
        self.checks = 0
        self.messages = []
        self.current = 0

    def set_indeterminate(self, indeterminate):
        pass

    def set_maximum(self, maximum):
        pass

    def set_current(self, current):
        self.current = current

    def is_cancelled(self):
        self.checks += 1
        return self.checks > self.n

    def append_message(self, message):
        self.messages.append(message)
