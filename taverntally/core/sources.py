import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

logger = logging.getLogger(__name__)


class LineSource(ABC):
    """
    Delivers Power.log lines to the engine in two phases.

    `history()` is a bounded trailing window of lines that already existed
    when the engine started; `live()` yields everything after it, in order.
    The engine always drains history before touching live.
    """

    @abstractmethod
    def history(self) -> Iterable[str]:
        """Bounded backlog of existing lines."""

    @abstractmethod
    def live(self) -> Iterable[str]:
        """New lines as they arrive."""


class ListLineSource(LineSource):
    """In-memory source, for tests and for callers that own the tailing."""

    def __init__(self, history: Optional[Iterable[str]] = None, live: Optional[Iterable[str]] = None):
        self._history = list(history or [])
        self._live = live if live is not None else []

    def history(self) -> List[str]:
        return list(self._history)

    def live(self) -> Iterator[str]:
        return iter(self._live)


class FileReplaySource(LineSource):
    """
    One-shot replay of a saved Power.log.

    `history()` is the tail of the file: the last `max_bytes`, at most
    `max_lines` lines. With `full=True` the whole file is delivered through
    `live()` instead. The file is not watched for new content.
    """

    def __init__(self, log_path: Union[str, Path], max_bytes: int = 50000, max_lines: int = 500,
                 full: bool = False):
        self.log_path = Path(log_path)
        self.max_bytes = max_bytes
        self.max_lines = max_lines
        self.full = full

    def history(self) -> List[str]:
        if self.full:
            return []
        try:
            return read_trailing_window(self.log_path, self.max_bytes, self.max_lines)
        except FileNotFoundError:
            logger.warning(f"Log file not found at {self.log_path}")
            return []

    def live(self) -> Iterator[str]:
        if not self.full:
            return
        try:
            with open(self.log_path, 'r', encoding='utf-8', errors='replace') as f:
                for line in f:
                    yield line.rstrip('\r\n')
        except FileNotFoundError:
            logger.warning(f"Log file not found at {self.log_path}")


def read_trailing_window(log_path: Union[str, Path], max_bytes: int = 50000, max_lines: int = 500) -> List[str]:
    """
    Return the last lines of a log file.

    Reads at most `max_bytes` from the end. When that cut lands mid-line the
    partial first line is dropped. At most `max_lines` lines are returned.
    """
    with open(log_path, 'rb') as f:
        f.seek(0, 2)  # Seek to end
        file_size = f.tell()
        start = max(0, file_size - max_bytes)
        f.seek(start)
        chunk = f.read(file_size - start)

    lines = chunk.decode('utf-8', errors='replace').splitlines()
    if start > 0 and lines:
        # Started mid-file: the first line is probably partial
        lines = lines[1:]
    lines = lines[-max_lines:] if max_lines > 0 else []
    logger.debug(f"Trailing window: {len(lines)} lines from the last {file_size - start} bytes of {log_path}")
    return lines
