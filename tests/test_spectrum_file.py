import pytest

from mgftools import SpectrumFile, FormatInferenceFailure, MGFSpectrumFile, MSPSpectrumFile
from mgftools.backends.dialect import MGF, MSP

from conftest import MGF_DOCUMENT, MSP_DOCUMENT


class TestFormatInference:
    def test_by_extension(self, mgf_path, msp_path):
        assert isinstance(SpectrumFile(mgf_path).backend, MGFSpectrumFile)
        assert SpectrumFile(msp_path).format == "msp"
        assert SpectrumFile(msp_path).dialect is MSP

    def test_by_header(self, write_file):
        assert SpectrumFile(write_file(MGF_DOCUMENT, "spectra.txt")).dialect is MGF
        assert SpectrumFile(write_file(MSP_DOCUMENT, "library.txt")).dialect is MSP

    def test_explicit_format(self, write_file):
        path = write_file(MSP_DOCUMENT, "library.dat")
        assert isinstance(SpectrumFile(path, format="msp").backend, MSPSpectrumFile)
        assert isinstance(SpectrumFile(path, format=MSPSpectrumFile).backend, MSPSpectrumFile)

    def test_failure(self, write_file):
        path = write_file("nothing to see here\n", "notes.txt")
        with pytest.raises(FormatInferenceFailure):
            SpectrumFile(path)
        with pytest.raises(FormatInferenceFailure):
            SpectrumFile(path, format="mzML")

    def test_supported_extensions(self):
        extensions = SpectrumFile.supported_file_extensions()
        assert "mgf" in extensions
        assert "msp" in extensions


class TestAccess:
    def test_lazy_index(self, mgf_path):
        spectrum_file = SpectrumFile(mgf_path)
        assert spectrum_file.index is None
        assert len(spectrum_file) == 3
        assert spectrum_file.index is not None

    def test_lookup(self, mgf_path):
        spectrum_file = SpectrumFile(mgf_path, create_index=True)
        assert "second" in spectrum_file
        assert "first spectrum_1" in spectrum_file
        assert "third" not in spectrum_file
        assert spectrum_file[0].title == "first spectrum"
        assert spectrum_file["second"].precursor.mz == 600.5
        assert spectrum_file.get_precursor(spectrum_number=2).mz == 700.0

    def test_iteration(self, msp_path):
        assert [r.title for r in SpectrumFile(msp_path)] == ["AAAK/2", "CCCR/3", "AAAK/2_1"]


class TestRepair:
    def test_rewrite_drops_index(self, mgf_path):
        spectrum_file = SpectrumFile(mgf_path)
        spectrum_file.create_index()
        assert spectrum_file.remove_duplicate_titles()
        assert spectrum_file.index is None
        assert len(spectrum_file) == 2

    def test_rewrite_rebuilds_index(self, mgf_path):
        spectrum_file = SpectrumFile(mgf_path, create_index=True)
        assert spectrum_file.index.precursor_charges_missing
        spectrum_file.add_missing_precursor_charges()
        assert spectrum_file.index is not None
        assert not spectrum_file.index.precursor_charges_missing

    def test_remove_zero_intensity_peaks(self, mgf_path):
        spectrum_file = SpectrumFile(mgf_path, create_index=True)
        assert not spectrum_file.index.peak_picked
        spectrum_file.remove_zero_intensity_peaks()
        assert spectrum_file.index.peak_picked

    def test_rename_and_add_titles(self, write_file):
        path = write_file(
            "BEGIN IONS\nTITLE=A\nEND IONS\n"
            "BEGIN IONS\nTITLE=A\nEND IONS\n"
            "BEGIN IONS\nEND IONS\n")
        spectrum_file = SpectrumFile(path, create_index=True)
        spectrum_file.rename_duplicate_titles()
        spectrum_file.add_missing_spectrum_titles()
        assert spectrum_file.index.titles == ("A", "A (2)", "Spectrum 3")

    def test_split(self, mgf_path):
        indices = SpectrumFile(mgf_path).split(1)
        assert sum(index.spectrum_count for index in indices) == 3
