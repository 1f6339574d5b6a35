import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass

from permitqr.documents.models import Document
from permitqr.logging.logger import Log
from permitqr.processor.exceptions import Stage


@dataclass(frozen=True)
class ProgressEvent:
    stage: Stage
    percent: float


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """Forwards progress to a callback, never going backwards and never past 100."""

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._last = 0.0

    @property
    def last(self) -> float:
        return self._last

    def report(self, stage: Stage, percent: float) -> None:
        value = min(100.0, max(self._last, float(percent)))
        self._last = value
        Log.debug(f"Progress {value:.0f}% after {stage.value}")
        if self._callback is not None:
            self._callback(ProgressEvent(stage, value))


class ProcessingTask:
    """A running pipeline: await ``result()``, iterate ``progress()``, or ``cancel()``.

    Cancelling leaves the record at its last committed stage, which a later
    resume picks up from.
    """

    def __init__(self, run: Callable[[ProgressCallback], Awaitable[Document]]) -> None:
        self._events: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._task: asyncio.Task[Document] = asyncio.ensure_future(run(self._events.put_nowait))
        self._task.add_done_callback(lambda _task: self._events.put_nowait(None))

    async def progress(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    def cancel(self) -> bool:
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> Document:
        return await self._task
