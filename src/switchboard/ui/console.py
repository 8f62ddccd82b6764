"""Console line input shared by the chat prompt and the confirmation gate.

Each read runs on a daemon thread so the event loop stays free and a read
still blocked on stdin never holds up interpreter shutdown. A read that is
abandoned (e.g. the confirmation prompt timed out) stays pending and is
picked up by the next ``readline`` call, so there is only ever one reader
on stdin and no typed line is consumed by a stale read.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import TextIO

READER_THREAD_NAME = "switchboard-stdin"


def _settle(future: asyncio.Future[str], line: str | None, exc: BaseException | None) -> None:
    if future.done():
        return
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(line or "")


class ConsoleInput:
    """Async line reader over a text stream (stdin by default)."""

    def __init__(self, stream: TextIO | None = None, output: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self._output = output if output is not None else sys.stdout
        self._pending: asyncio.Future[str] | None = None

    def _start_read(self) -> asyncio.Future[str]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[str] = loop.create_future()

        def read() -> None:
            line: str | None = None
            error: BaseException | None = None
            try:
                line = self._stream.readline()
            except Exception as exc:
                error = exc
            try:
                loop.call_soon_threadsafe(_settle, future, line, error)
            except RuntimeError:
                # The loop closed while this read was blocked; nobody is waiting.
                pass

        threading.Thread(target=read, name=READER_THREAD_NAME, daemon=True).start()
        return future

    async def readline(self, prompt: str = "") -> str:
        """Write *prompt*, then return the next line without its line ending.

        Raises :exc:`EOFError` when the stream is exhausted.
        """
        if prompt:
            self._output.write(prompt)
            self._output.flush()

        if self._pending is None:
            self._pending = self._start_read()
        pending = self._pending
        try:
            line = await asyncio.shield(pending)
        finally:
            if pending.done():
                self._pending = None

        if not line:
            raise EOFError("end of input")
        return line.rstrip("\r\n")

    __call__ = readline
