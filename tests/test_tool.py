"""Tests for the command line interface"""
import json
import os

from click.testing import CliRunner

from mgftools.tool import main
from mgftools.backends import MGFSpectrumFile


def read_text(path):
    with open(path, "rb") as fh:
        return fh.read().decode("utf8")


def invoke(*args):
    runner = CliRunner()
    return runner.invoke(main, list(args))


class TestInspect:
    def test_index(self, mgf_path):
        result = invoke("index", mgf_path)
        assert result.exit_code == 0, result.output
        assert "Spectra: 3" in result.output
        assert "Duplicated titles: 1" in result.output
        assert "Precursor charges missing: True" in result.output

    def test_index_error(self, write_file):
        path = write_file("BEGIN IONS\nTITLE=a\nRTINSECONDS=soon\nEND IONS\n")
        result = invoke("index", path)
        assert result.exit_code != 0
        assert "soon" in result.output

    def test_unknown_format(self, write_file):
        path = write_file("nothing to see here\n", "notes.txt")
        result = invoke("index", path)
        assert result.exit_code != 0

    def test_describe(self, mgf_path):
        result = invoke("describe", mgf_path, "second")
        assert result.exit_code == 0, result.output
        assert "TITLE=second\n" in result.output
        assert "CHARGE=2+ and 3+\n" in result.output

    def test_describe_missing(self, mgf_path):
        result = invoke("describe", mgf_path, "third")
        assert result.exit_code != 0

    def test_first_n(self, msp_path):
        result = invoke("first-n", "-n", "2", msp_path)
        assert result.exit_code == 0, result.output
        assert result.output.count("BEGIN IONS") == 2
        assert "TITLE=CCCR/3\n" in result.output


class TestRepair:
    def test_dedup(self, mgf_path):
        result = invoke("dedup", mgf_path)
        assert result.exit_code == 0, result.output
        assert len(MGFSpectrumFile(mgf_path).create_index()) == 2

    def test_dedup_rename(self, mgf_path):
        result = invoke("dedup", "--rename", mgf_path)
        assert result.exit_code == 0, result.output
        assert "TITLE=first%20spectrum (2)" in read_text(mgf_path)

    def test_add_titles(self, write_file):
        path = write_file("BEGIN IONS\n100 1\nEND IONS\n")
        result = invoke("add-titles", path)
        assert result.exit_code == 0, result.output
        assert read_text(path) == "BEGIN IONS\nTITLE=Spectrum 1\n100 1\nEND IONS\n"

    def test_add_charges(self, write_file):
        path = write_file("BEGIN IONS\nTITLE=a\n100 1\nEND IONS\n")
        result = invoke("add-charges", "--min-charge", "1", "--max-charge", "2", path)
        assert result.exit_code == 0, result.output
        assert "CHARGE=1+ and 2+\n" in read_text(path)

    def test_add_charges_config(self, write_file, tmp_path):
        path = write_file("BEGIN IONS\nTITLE=a\n100 1\nEND IONS\n")
        config = tmp_path / "charges.json"
        config.write_text(json.dumps({"min_charge": 3, "max_charge": 3}))
        result = invoke("add-charges", "-c", str(config), path)
        assert result.exit_code == 0, result.output
        assert "CHARGE=3+\n" in read_text(path)

    def test_add_charges_invalid_range(self, write_file):
        content = "BEGIN IONS\nTITLE=a\n100 1\nEND IONS\n"
        path = write_file(content)
        result = invoke("add-charges", "--min-charge", "5", "--max-charge", "2", path)
        assert result.exit_code != 0
        assert read_text(path) == content

    def test_remove_zeros(self, mgf_path):
        result = invoke("remove-zeros", mgf_path)
        assert result.exit_code == 0, result.output
        assert "150.0 0.0" not in read_text(mgf_path)

    def test_split(self, mgf_path):
        result = invoke("split", "-n", "1", mgf_path)
        assert result.exit_code == 0, result.output
        stem = os.path.splitext(mgf_path)[0]
        assert os.path.exists(stem + "_1.mgf")
        assert f"{stem}_1.mgf\t" in result.output

    def test_split_requires_positive_count(self, mgf_path):
        result = invoke("split", "-n", "0", mgf_path)
        assert result.exit_code != 0
