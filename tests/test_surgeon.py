"""Tests for the whole-file repair operations"""
import os

import pytest

from mgftools import surgeon
from mgftools.backends import MGFSpectrumFile, MSPSpectrumFile
from mgftools.backends.dialect import MGF, MSP
from mgftools.defaults import ChargeRangePreferences
from mgftools.utils import FileReplacementError, FormatError

from conftest import MGF_DOCUMENT, MSP_DOCUMENT, CancelAfter


def read_text(path):
    with open(path, "rb") as fh:
        return fh.read().decode("utf8")


def titles_of(path, backend_type=MGFSpectrumFile):
    return [record.title for record in backend_type(path)]


class TestIterBlocks:
    def test_mgf_blocks(self):
        blocks = list(surgeon.iter_blocks(MGF_DOCUMENT.splitlines(True), MGF))
        assert [block.is_record for block in blocks] == [False, True, False, True, False, True]
        assert "".join(line for block in blocks for line in block.lines) == MGF_DOCUMENT

    def test_msp_blocks(self):
        blocks = list(surgeon.iter_blocks(MSP_DOCUMENT.splitlines(True), MSP))
        records = [block for block in blocks if block.is_record]
        assert len(records) == 3
        assert records[0].lines[-1] == "\n"
        assert "".join(line for block in blocks for line in block.lines) == MSP_DOCUMENT


class TestReplaceFile:
    def test_replace(self, tmp_path):
        original = tmp_path / "a.mgf"
        replacement = tmp_path / "a.mgf_temp"
        original.write_text("old")
        replacement.write_text("new")
        surgeon.replace_file(str(original), str(replacement))
        assert original.read_text() == "new"
        assert not replacement.exists()

    def test_atomic_replace(self, tmp_path):
        original = tmp_path / "a.mgf"
        replacement = tmp_path / "a.mgf_temp"
        original.write_text("old")
        replacement.write_text("new")
        surgeon.replace_file(str(original), str(replacement), atomic=True)
        assert original.read_text() == "new"

    def test_failed_delete(self, tmp_path):
        replacement = tmp_path / "a.mgf_temp"
        replacement.write_text("new")
        with pytest.raises(FileReplacementError) as excinfo:
            surgeon.replace_file(str(tmp_path / "missing.mgf"), str(replacement))
        assert not excinfo.value.original_removed
        assert isinstance(excinfo.value, OSError)

    def test_failed_rename(self, tmp_path):
        original = tmp_path / "a.mgf"
        original.write_text("old")
        with pytest.raises(FileReplacementError) as excinfo:
            surgeon.replace_file(str(original), str(tmp_path / "missing_temp"))
        assert excinfo.value.original_removed
        assert not original.exists()


class TestRemoveDuplicateTitles:
    def test_removes_later_records(self, mgf_path):
        assert surgeon.remove_duplicate_titles(mgf_path)
        assert titles_of(mgf_path) == ["first spectrum", "second"]
        text = read_text(mgf_path)
        assert text.startswith("MASS=Monoisotopic\n")
        assert "PEPMASS=700.0" not in text
        assert not os.path.exists(mgf_path + "_temp")

    def test_idempotent(self, mgf_path):
        surgeon.remove_duplicate_titles(mgf_path)
        once = read_text(mgf_path)
        surgeon.remove_duplicate_titles(mgf_path)
        assert read_text(mgf_path) == once

    def test_keeps_untitled_records(self, write_file):
        path = write_file("BEGIN IONS\n100 1\nEND IONS\nBEGIN IONS\n200 1\nEND IONS\n")
        surgeon.remove_duplicate_titles(path)
        assert len(list(MGFSpectrumFile(path))) == 2

    def test_msp(self, msp_path):
        surgeon.remove_duplicate_titles(msp_path)
        assert titles_of(msp_path, MSPSpectrumFile) == ["AAAK/2", "CCCR/3"]

    def test_cancelled_leaves_file_untouched(self, mgf_path):
        before = read_text(mgf_path)
        assert not surgeon.remove_duplicate_titles(mgf_path, progress=CancelAfter(1))
        assert read_text(mgf_path) == before
        assert not os.path.exists(mgf_path + "_temp")


class TestRenameDuplicateTitles:
    def test_renames(self, write_file):
        path = write_file(
            "BEGIN IONS\nTITLE=A\nEND IONS\n"
            "BEGIN IONS\nTITLE=A\nEND IONS\n"
            "BEGIN IONS\nTITLE=A\nEND IONS\n")
        assert surgeon.rename_duplicate_titles(path)
        assert titles_of(path) == ["A", "A (2)", "A (3)"]

    def test_index_is_unique_afterwards(self, mgf_path):
        surgeon.rename_duplicate_titles(mgf_path)
        index = MGFSpectrumFile(mgf_path).create_index()
        assert not index.duplicate_counts
        assert index.titles == ("first spectrum", "second", "first spectrum (2)")


class TestAddMissingSpectrumTitles:
    def test_inserts_after_begin(self, write_file):
        path = write_file(
            "BEGIN IONS\nPEPMASS=100\nEND IONS\n"
            "BEGIN IONS\nTITLE=Spectrum 3\nEND IONS\n"
            "BEGIN IONS\nPEPMASS=300\nEND IONS\n")
        assert surgeon.add_missing_spectrum_titles(path)
        text = read_text(path)
        assert text.startswith("BEGIN IONS\nTITLE=Spectrum 1\nPEPMASS=100\n")
        assert titles_of(path) == ["Spectrum 1", "Spectrum 3", "Spectrum 4"]

    def test_keeps_line_endings(self, write_file):
        path = write_file("BEGIN IONS\nPEPMASS=100\nEND IONS\n", newline="\r\n")
        surgeon.add_missing_spectrum_titles(path)
        assert read_text(path) == "BEGIN IONS\r\nTITLE=Spectrum 1\r\nPEPMASS=100\r\nEND IONS\r\n"

    def test_msp_rewrites_empty_name(self, write_file):
        path = write_file("Name:\nPrecursorMZ: 100\n100 1\n", "library.msp")
        surgeon.add_missing_spectrum_titles(path)
        assert read_text(path) == "Name: Spectrum 1\nPrecursorMZ: 100\n100 1\n"


class TestAddMissingPrecursorCharges:
    def test_inserts_before_first_peak(self, write_file):
        path = write_file(
            "BEGIN IONS\nTITLE=a\nPEPMASS=100\n100 1\n200 1\nEND IONS\n"
            "BEGIN IONS\nTITLE=b\nCHARGE=3+\n100 1\nEND IONS\n")
        assert surgeon.add_missing_precursor_charges(path, ChargeRangePreferences(2, 4))
        assert read_text(path) == (
            "BEGIN IONS\nTITLE=a\nPEPMASS=100\nCHARGE=2+ and 3+ and 4+\n100 1\n200 1\nEND IONS\n"
            "BEGIN IONS\nTITLE=b\nCHARGE=3+\n100 1\nEND IONS\n")
        index = MGFSpectrumFile(path).create_index()
        assert not index.precursor_charges_missing

    def test_default_preferences(self, write_file, monkeypatch):
        monkeypatch.setenv("MGFTOOLS_CHARGE_RANGE", "2-3")
        path = write_file("BEGIN IONS\nTITLE=a\n100 1\nEND IONS\n")
        surgeon.add_missing_precursor_charges(path)
        assert "CHARGE=2+ and 3+\n" in read_text(path)

    def test_msp_name_charge_counts(self, msp_path):
        before = read_text(msp_path)
        surgeon.add_missing_precursor_charges(msp_path, ChargeRangePreferences(2, 3))
        assert read_text(msp_path) == before


class TestRemoveZeroIntensityPeaks:
    def test_removes_zero_peaks(self, mgf_path):
        assert surgeon.remove_zero_intensity_peaks(mgf_path)
        text = read_text(mgf_path)
        assert "150.0 0.0" not in text
        assert "250.0 5.0\n" in text
        index = MGFSpectrumFile(mgf_path).create_index()
        assert index.peak_picked

    def test_three_field_peaks(self, write_file):
        path = write_file("BEGIN IONS\n100 0 ?\n200 1 b2\n300 0.0\nEND IONS\n")
        surgeon.remove_zero_intensity_peaks(path)
        assert read_text(path) == "BEGIN IONS\n200 1 b2\nEND IONS\n"

    def test_lines_outside_records_are_kept(self, write_file):
        path = write_file("100 0\nBEGIN IONS\n100 0\nEND IONS\n")
        surgeon.remove_zero_intensity_peaks(path)
        assert read_text(path) == "100 0\nBEGIN IONS\nEND IONS\n"

    def test_other_shapes_are_kept(self, write_file):
        path = write_file("BEGIN IONS\n100 0 a b\nTITLE=x 0\nEND IONS\n")
        surgeon.remove_zero_intensity_peaks(path)
        assert read_text(path) == "BEGIN IONS\n100 0 a b\nTITLE=x 0\nEND IONS\n"

    def test_bad_intensity_raises(self, write_file):
        content = "BEGIN IONS\nTITLE=a\n100 zero\nEND IONS\n"
        path = write_file(content)
        with pytest.raises(FormatError):
            surgeon.remove_zero_intensity_peaks(path)
        assert read_text(path) == content
        assert not os.path.exists(path + "_temp")

    def test_msp(self, msp_path):
        surgeon.remove_zero_intensity_peaks(msp_path)
        assert "300.3\t0" not in read_text(msp_path)
        assert "110.0 5; 120.0 6;\n" in read_text(msp_path)

    def test_msp_separated_peaks(self, write_file):
        path = write_file(
            "Name: X/2\nNum peaks: 5\n110.0 5;\n120.0 0;\n130.0 7; 140.0 0; 150.0 8;\n", "lib.msp")
        assert surgeon.remove_zero_intensity_peaks(path)
        assert read_text(path) == "Name: X/2\nNum peaks: 5\n110.0 5;\n130.0 7; 150.0 8;\n"
        record, = MSPSpectrumFile(path).read()
        assert sorted(record.peaks) == [110.0, 130.0, 150.0]


class TestSplitFile:
    def _document(self, n):
        return "".join(
            f"BEGIN IONS\nTITLE=s{i}\nPEPMASS={100 + i}\n100 1\nEND IONS\n" for i in range(n))

    def test_parts(self, write_file):
        path = write_file(self._document(11))
        indices = surgeon.split_file(path, 4)
        assert [index.spectrum_count for index in indices] == [4, 4, 3]
        assert [os.path.basename(index.filename) for index in indices] == [
            "spectra_1.mgf", "spectra_2.mgf", "spectra_3.mgf"]
        assert sum(index.spectrum_count for index in indices) == 11
        assert os.path.exists(path)

    def test_no_tiny_trailing_part(self, write_file):
        path = write_file(self._document(9))
        indices = surgeon.split_file(path, 4)
        assert [index.spectrum_count for index in indices] == [4, 5]

    def test_titles_are_preserved_in_order(self, write_file):
        path = write_file(self._document(7))
        indices = surgeon.split_file(path, 3)
        titles = [title for index in indices for title in index.titles]
        assert titles == [f"s{i}" for i in range(7)]

    def test_unsupported_extension(self, write_file):
        path = write_file(self._document(3), "spectra.txt")
        with pytest.raises(ValueError):
            surgeon.split_file(path, 2)
        with pytest.raises(ValueError):
            surgeon.split_file(path, 2, dialect="mgf")

    def test_cancelled(self, write_file):
        path = write_file(self._document(10))
        indices = surgeon.split_file(path, 2, progress=CancelAfter(3))
        assert sum(index.spectrum_count for index in indices) == 3

    def test_msp(self, msp_path):
        indices = surgeon.split_file(msp_path, 1)
        assert sum(index.spectrum_count for index in indices) == 3
        assert os.path.basename(indices[0].filename) == "library_1.msp"
