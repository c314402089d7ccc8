"""Error types shared by the readers, the indexer and the file surgeon"""
from typing import Optional


class FormatError(ValueError):
    """
    Raised when the content of a peak list file cannot be interpreted.

    Attributes
    ----------
    message : str
        The description of the problem, without context
    raw : str, optional
        The offending token or line, if one could be isolated.
    title : str, optional
        The title of the spectrum being read when the error occurred, if known.
    filename : str, optional
        The name of the file being read, if known.
    """

    message: str
    raw: Optional[str]
    title: Optional[str]
    filename: Optional[str]

    def __init__(self, message: str, raw: Optional[str] = None, title: Optional[str] = None,
                 filename: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.raw = raw
        self.title = title
        self.filename = filename

    def add_context(self, title: Optional[str] = None, filename: Optional[str] = None) -> 'FormatError':
        """Fill in the spectrum title and file name if they are not already known"""
        if self.title is None:
            self.title = title
        if self.filename is None:
            self.filename = filename
        return self

    def __str__(self):
        context = []
        if self.filename is not None:
            context.append(f"file: {self.filename}")
        if self.title is not None:
            context.append(f"title: {self.title}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class FileReplacementError(OSError):
    """
    Raised when the delete-then-rename pair that replaces a rewritten file fails.

    Attributes
    ----------
    original_removed : bool
        Whether the original file had already been deleted when the failure occurred.
        If so, the rewritten content is only available at :attr:`replacement`.
    replacement : str
        The path of the rewritten temporary file.
    """

    original_removed: bool
    replacement: str

    def __init__(self, message: str, replacement: str, original_removed: bool = False):
        super().__init__(message)
        self.replacement = replacement
        self.original_removed = original_removed
