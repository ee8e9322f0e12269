"""Terminal helpers: a progress spinner and a yes/no prompt."""

from __future__ import annotations

import itertools
import sys
import threading
from typing import TextIO

_FRAMES = ("|", "/", "-", "\\")
_ERASE_LINE = "\r\033[K"


class ProgressSpinner:
    """An animated spinner drawn on a terminal while work is in progress.

    Nothing is drawn when the stream is not a terminal.
    """

    def __init__(self, prefix: str = "", stream: TextIO | None = None, interval: float = 0.2) -> None:
        self.prefix = prefix
        self.interval = interval
        self._stream = stream
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def active(self) -> bool:
        return self._thread is not None

    def _run(self, stream: TextIO, stop_event: threading.Event) -> None:
        for frame in itertools.cycle(_FRAMES):
            stream.write(f"\r{self.prefix} {frame}")
            stream.flush()
            if stop_event.wait(self.interval):
                break

    def start(self) -> ProgressSpinner:
        """Start drawing, if the stream is a terminal."""
        with self._lock:
            if self._thread is not None:
                return self
            stream = self.stream
            isatty = getattr(stream, "isatty", None)
            if isatty is None or not isatty():
                return self
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(stream, self._stop_event), daemon=True
            )
            self._thread.start()
        return self

    def stop(self) -> None:
        """Stop drawing and erase the spinner line; safe to call repeatedly."""
        with self._lock:
            if self._thread is None or self._stop_event is None:
                return
            self._stop_event.set()
            self._thread.join()
            self._thread = None
            self._stop_event = None
            stream = self.stream
            stream.write(_ERASE_LINE)
            stream.flush()

    def __enter__(self) -> ProgressSpinner:
        return self.start()

    def __exit__(self, *args) -> None:
        self.stop()


def start_progress_spinner(prefix: str) -> ProgressSpinner:
    """Start a spinner on standard output; call its stop() when done."""
    return ProgressSpinner(prefix).start()


def confirmation_prompt(prompt: str, stdin: TextIO | None = None, stdout: TextIO | None = None) -> bool:
    """Ask a yes/no question until answered; end of input counts as no."""
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    while True:
        stdout.write(f"{prompt} [y/n] ")
        stdout.flush()
        line = stdin.readline()
        if not line:
            return False
        answer = line.strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
        stdout.write('Invalid input. Please enter "y" or "n".\n')