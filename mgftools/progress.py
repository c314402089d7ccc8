"""Progress reporting and cancellation for long running scans and rewrites"""
import logging

from typing import Protocol, runtime_checkable


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@runtime_checkable
class ProgressSink(Protocol):
    """
    Receives progress reports from the indexer and the file surgeon,
    and tells them whether to stop.

    Cancellation is only honored at record boundaries.
    """

    def set_indeterminate(self, indeterminate: bool) -> None:
        ...

    def set_maximum(self, maximum: int) -> None:
        ...

    def set_current(self, current: int) -> None:
        ...

    def is_cancelled(self) -> bool:
        ...

    def append_message(self, message: str) -> None:
        ...


class NullProgress:
    """A :class:`ProgressSink` which ignores every report and never cancels"""

    def set_indeterminate(self, indeterminate: bool) -> None:
        pass

    def set_maximum(self, maximum: int) -> None:
        pass

    def set_current(self, current: int) -> None:
        pass

    def is_cancelled(self) -> bool:
        return False

    def append_message(self, message: str) -> None:
        pass


class LoggingProgress(NullProgress):
    """A :class:`ProgressSink` which forwards messages to :mod:`logging`"""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def append_message(self, message: str) -> None:
        logger.log(self.level, message)
