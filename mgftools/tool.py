"""Command line tools to inspect and repair MGF and MSP peak list files"""
import sys
import logging

import click

from mgftools import SpectrumFile
from mgftools.backends import FormatInferenceFailure
from mgftools.backends.dialect import DIALECTS
from mgftools.defaults import ChargeRangePreferences
from mgftools.utils import FormatError, FileReplacementError


logger = logging.getLogger(__name__)


class ClickProgress:
    """A :class:`~.ProgressSink` drawing a :func:`click.progressbar` on STDERR"""

    def __init__(self, label: str):
        self.bar = click.progressbar(length=100, label=label, file=click.get_text_stream("stderr"))
        self.current = 0

    def set_indeterminate(self, indeterminate: bool) -> None:
        pass

    def set_maximum(self, maximum: int) -> None:
        self.bar.length = maximum

    def set_current(self, current: int) -> None:
        if current > self.current:
            self.bar.update(current - self.current)
            self.current = current

    def is_cancelled(self) -> bool:
        return False

    def append_message(self, message: str) -> None:
        logger.info(message)

    def __enter__(self):
        self.bar.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self.bar.__exit__(exc_type, exc_val, exc_tb)


def format_option(f):
    return click.option(
        "-f", "--format", "file_format", type=click.Choice(sorted(DIALECTS)), default=None,
        help="The format of the file. Inferred from the file when omitted.")(f)


def _open(path: str, file_format=None, create_index: bool = False) -> SpectrumFile:
    click.echo(f"Opening {path}", err=True)
    try:
        return SpectrumFile(path, format=file_format, create_index=create_index)
    except FormatInferenceFailure as err:
        click.echo(f"{err}", err=True)
        raise click.Abort()


def _run(operation, *args, **kwargs):
    try:
        return operation(*args, **kwargs)
    except (FormatError, FileReplacementError) as err:
        click.echo(f"{err}", err=True)
        raise click.Abort()


@click.group("mgftools")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]), default="WARNING",
              help="The minimum level of log messages to show")
def main(log_level: str = "WARNING"):
    """Inspect and repair MGF and MSP peak list files"""
    logging.basicConfig(level=getattr(logging, log_level), stream=sys.stderr)


@main.command("index")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@format_option
def index(inpath, file_format=None):
    """Scan a file and report what it contains"""
    spectrum_file = _open(inpath, file_format)
    with ClickProgress("Indexing") as progress:
        file_index = _run(spectrum_file.create_index, progress)
    click.echo(f"File: {file_index.name}")
    click.echo(f"Spectra: {file_index.spectrum_count}")
    click.echo(f"Titles: {len(file_index.titles)}")
    click.echo(f"Duplicated titles: {len(file_index.duplicate_counts)}")
    click.echo(f"Retention time: {file_index.min_retention_time} - {file_index.max_retention_time}")
    click.echo(f"Max precursor m/z: {file_index.max_precursor_mz}")
    click.echo(f"Max precursor intensity: {file_index.max_precursor_intensity}")
    click.echo(f"Max charge: {file_index.max_charge}")
    click.echo(f"Max peak count: {file_index.max_peak_count}")
    click.echo(f"Peak picked: {file_index.peak_picked}")
    click.echo(f"Precursor charges missing: {file_index.precursor_charges_missing}")


@main.command("describe")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@click.argument("title")
@format_option
def describe(inpath, title, file_format=None):
    """Write the spectrum with the given title to STDOUT in MGF format"""
    spectrum_file = _open(inpath, file_format)
    _run(spectrum_file.create_index)
    try:
        record = _run(spectrum_file.get_spectrum, spectrum_title=title)
    except KeyError:
        click.echo(f"No spectrum titled {title!r} in {inpath}", err=True)
        raise click.Abort()
    click.echo(record.to_mgf(), nl=False)


@main.command("first-n")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@format_option
@click.option("-n", "--spectra-to-read", type=int, default=20)
def first_n(inpath, file_format=None, spectra_to_read: int = 20):
    """Read only the first `n` spectra from the input file and write them to STDOUT in MGF format"""
    spectrum_file = _open(inpath, file_format)
    stream = click.get_text_stream("stdout")
    for i, record in enumerate(spectrum_file, 1):
        if i > spectra_to_read:
            break
        stream.write(record.to_mgf())


@main.command("dedup")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@format_option
@click.option("--rename", is_flag=True, help="Rename later duplicates instead of removing them")
def dedup(inpath, file_format=None, rename: bool = False):
    """Remove, or rename, spectra whose title was already used"""
    spectrum_file = _open(inpath, file_format)
    with ClickProgress("Deduplicating") as progress:
        if rename:
            _run(spectrum_file.rename_duplicate_titles, progress)
        else:
            _run(spectrum_file.remove_duplicate_titles, progress)


@main.command("add-titles")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@format_option
def add_titles(inpath, file_format=None):
    """Give every spectrum without a title a "Spectrum <n>" title"""
    spectrum_file = _open(inpath, file_format)
    with ClickProgress("Adding titles") as progress:
        _run(spectrum_file.add_missing_spectrum_titles, progress)


@main.command("add-charges")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@format_option
@click.option("--min-charge", type=int, default=None)
@click.option("--max-charge", type=int, default=None)
@click.option("-c", "--config", type=click.Path(exists=True, dir_okay=False), default=None,
              help="A JSON file with min_charge and max_charge keys")
def add_charges(inpath, file_format=None, min_charge=None, max_charge=None, config=None):
    """Give every spectrum without a precursor charge a range of charges"""
    try:
        preferences = ChargeRangePreferences.load(config)
        if min_charge is not None or max_charge is not None:
            preferences = ChargeRangePreferences(
                min_charge if min_charge is not None else preferences.min_charge,
                max_charge if max_charge is not None else preferences.max_charge,
            )
    except ValueError as err:
        raise click.BadParameter(str(err))
    spectrum_file = _open(inpath, file_format)
    with ClickProgress("Adding charges") as progress:
        _run(spectrum_file.add_missing_precursor_charges, preferences, progress)


@main.command("remove-zeros")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@format_option
def remove_zeros(inpath, file_format=None):
    """Remove every peak with an intensity of zero"""
    spectrum_file = _open(inpath, file_format)
    with ClickProgress("Removing zero intensity peaks") as progress:
        _run(spectrum_file.remove_zero_intensity_peaks, progress)


@main.command("split")
@click.argument("inpath", type=click.Path(exists=True, dir_okay=False))
@format_option
@click.option("-n", "--max-spectra", type=click.IntRange(min=1), required=True,
              help="The largest number of spectra in one part")
def split(inpath, file_format=None, max_spectra: int = 1):
    """Split a file into parts of at most `n` spectra"""
    spectrum_file = _open(inpath, file_format)
    with ClickProgress("Splitting") as progress:
        try:
            indices = _run(spectrum_file.split, max_spectra, progress)
        except ValueError as err:
            click.echo(f"{err}", err=True)
            raise click.Abort()
    for file_index in indices:
        click.echo(f"{file_index.filename}\t{file_index.spectrum_count}")


if __name__ == "__main__":
    main.main()
