"""Opening peak list files and walking their lines"""
import io
import os
import gzip
import logging

from contextlib import contextmanager, ExitStack
from typing import BinaryIO, Iterator, Tuple, Union

LINE_ENCODING = "utf8"
LINE_ERRORS = "surrogateescape"

READ_BUFFER_SIZE = 2 ** 20
GZIP_MAGIC = b"\037\213"

GzipFile = gzip.GzipFile
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

try:
    # Fast random acces with Gzip compatibility
    import idzip

    idzip.compressor.IdzipWriter.enforce_extension = False

    GzipFile = idzip.IdzipFile
except ImportError:
    pass


def test_gzipped(f: Union[str, os.PathLike, BinaryIO]) -> bool:
    """
    Check whether a file starts with the gzip magic number.

    A stream is left at the position it was found in. Streams which can
    neither peek nor seek are assumed not to be compressed.
    """
    if isinstance(f, (str, os.PathLike)):
        with io.open(f, "rb") as handle:
            return handle.read(2) == GZIP_MAGIC
    if hasattr(f, "peek"):
        return f.peek(2)[:2] == GZIP_MAGIC
    if not f.seekable():
        return False
    position = f.tell()
    magic = f.read(2)
    f.seek(position)
    return magic == GZIP_MAGIC


@contextmanager
def open_stream(source: Union[str, os.PathLike, BinaryIO],
                buffer_size: int = READ_BUFFER_SIZE) -> Iterator[BinaryIO]:
    """
    Open a peak list for binary reading, decompressing it on the fly when
    it is gzipped.

    Parameters
    ----------
    source : str, os.PathLike or file-like
        A path, or a binary stream. A stream is read from its current
        position and is not closed on exit.
    buffer_size : int
        The read buffer size used for paths

    Yields
    ------
    file-like
        A seekable binary stream of the (decompressed) content
    """
    with ExitStack() as stack:
        if hasattr(source, "read"):
            raw = source
        else:
            raw = stack.enter_context(io.open(source, "rb", buffering=buffer_size))
        if test_gzipped(raw):
            logger.debug("Reading %r as gzip", source)
            yield stack.enter_context(GzipFile(fileobj=raw, mode="rb"))
        else:
            yield raw


def decode_line(raw: bytes) -> str:
    """Decode a raw line without failing on invalid byte sequences"""
    return raw.decode(LINE_ENCODING, errors=LINE_ERRORS)


def iter_lines(stream: BinaryIO) -> Iterator[str]:
    """Iterate over the decoded lines of a binary stream from its current position"""
    for raw in stream:
        yield decode_line(raw)


def iter_lines_with_offsets(stream: BinaryIO, offset: int = 0) -> Iterator[Tuple[str, int]]:
    """
    Iterate over the decoded lines of a binary stream along with the
    absolute byte offset following each line.

    The offsets are summed from the raw line lengths rather than read with
    :meth:`tell`, which is considerably slower.

    Parameters
    ----------
    stream : file-like
        A stream opened in binary mode
    offset : int
        The offset of the current position of ``stream``

    Yields
    ------
    line : str
        The decoded line, with its line ending
    offset : int
        The byte offset just past the line
    """
    for raw in stream:
        offset += len(raw)
        yield decode_line(raw), offset
