"""Ordered, append-only log shared between a run and its observers."""

from __future__ import annotations

from typing import Callable, Iterator

from tweakbuild.models import LogEntry, LogLevel

LogListener = Callable[[LogEntry], None]


class BuildLog:
    """Append-only sequence of :class:`LogEntry` with change listeners.

    Entries are appended from the coroutine that drives a run, so listeners are
    always invoked on the event-loop thread in the order entries are produced.
    """

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self._listeners: list[LogListener] = []

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Register *listener* for every future entry; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def append(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        entry = LogEntry(message=message, level=level)
        self._entries.append(entry)
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.append(message, LogLevel.INFO)

    def output(self, message: str) -> LogEntry:
        return self.append(message, LogLevel.OUTPUT)

    def warning(self, message: str) -> LogEntry:
        return self.append(message, LogLevel.WARNING)

    def error(self, message: str) -> LogEntry:
        return self.append(message, LogLevel.ERROR)

    def success(self, message: str) -> LogEntry:
        return self.append(message, LogLevel.SUCCESS)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def messages(self, level: LogLevel | None = None) -> list[str]:
        """Messages in order, optionally only those at *level*."""
        return [e.message for e in self._entries if level is None or e.level == level]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))
