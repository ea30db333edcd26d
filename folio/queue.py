"""Per-document serial executor for debounced save and rename intents.

Each open document gets one worker task. Debounce timers feed intents into a
pending list that holds at most one Save and one Rename; the worker runs them
strictly one at a time, so a rename in flight always finishes (and rebinds the
document's path) before a save queued behind it starts, and vice versa.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class IntentKind(str, Enum):
    SAVE = "save"
    RENAME = "rename"


@dataclass
class Intent:
    """One unit of work for a document.

    Save intents carry no payload: the runner reads the document's current
    content when the intent executes, so the latest edit always wins.
    """

    kind: IntentKind
    new_name: Optional[str] = None
    automatic: bool = True
    future: Optional[asyncio.Future] = None


IntentRunner = Callable[[Intent], Awaitable[None]]
ErrorCallback = Callable[[Intent, Exception], None]


class DocumentQueue:
    """Debounced, coalescing, strictly serial intent queue for one document."""

    def __init__(
        self,
        document_id: str,
        runner: IntentRunner,
        on_error: ErrorCallback,
        save_delay: float = 1.0,
        rename_delay: float = 1.5,
    ):
        self.document_id = document_id
        self._runner = runner
        self._on_error = on_error
        self._delays = {IntentKind.SAVE: save_delay, IntentKind.RENAME: rename_delay}
        self._pending: List[Intent] = []
        self._timers: Dict[IntentKind, Tuple[asyncio.TimerHandle, Intent]] = {}
        self._wakeup = asyncio.Event()
        self._drained = asyncio.Event()
        self._drained.set()
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[Intent] = None
        self._closed = False

    @property
    def busy(self) -> bool:
        return bool(self._pending) or bool(self._timers) or not self._drained.is_set()

    def request_save(self) -> None:
        self._arm(Intent(IntentKind.SAVE))

    def request_rename(self, new_name: str) -> None:
        self._arm(Intent(IntentKind.RENAME, new_name=new_name))

    def _arm(self, intent: Intent) -> None:
        if self._closed:
            return
        self._cancel_timer(intent.kind)
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self._delays[intent.kind], self._fire, intent)
        self._timers[intent.kind] = (handle, intent)

    def _cancel_timer(self, kind: IntentKind) -> None:
        armed = self._timers.pop(kind, None)
        if armed is not None:
            armed[0].cancel()

    def _fire(self, intent: Intent) -> None:
        self._timers.pop(intent.kind, None)
        self._enqueue(intent)

    def _enqueue(self, intent: Intent) -> None:
        if self._closed:
            return
        if intent.future is None:
            for pending in self._pending:
                if pending.kind == intent.kind and pending.future is None:
                    if intent.kind == IntentKind.RENAME:
                        pending.new_name = intent.new_name
                    return
        self._pending.append(intent)
        self._drained.clear()
        self._ensure_worker()
        self._wakeup.set()

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name=f"document-queue-{self.document_id}"
            )

    async def submit_now(self, intent: Intent) -> None:
        """Run an intent without debounce and wait for its outcome.

        A debounced intent of the same kind is superseded.

        Raises:
            Whatever the runner raised for this intent
        """
        if self._closed:
            raise RuntimeError(f"Queue for document {self.document_id} is closed")
        self._cancel_timer(intent.kind)
        if intent.kind == IntentKind.SAVE:
            self._pending = [p for p in self._pending if p.kind != IntentKind.SAVE or p.future is not None]
        intent.future = asyncio.get_running_loop().create_future()
        self._enqueue(intent)
        await intent.future

    async def _run(self) -> None:
        while True:
            if not self._pending:
                self._drained.set()
                if self._closed:
                    return
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            intent = self._pending.pop(0)
            self._current = intent
            try:
                await self._runner(intent)
            except asyncio.CancelledError:
                if intent.future is not None and not intent.future.done():
                    intent.future.cancel()
                raise
            except Exception as e:
                if intent.future is not None:
                    if not intent.future.done():
                        intent.future.set_exception(e)
                else:
                    self._on_error(intent, e)
            else:
                if intent.future is not None and not intent.future.done():
                    intent.future.set_result(None)
            finally:
                self._current = None

    async def flush(self) -> None:
        """Fire armed timers immediately and wait until every intent has run."""
        for kind in list(self._timers):
            handle, intent = self._timers.pop(kind)
            handle.cancel()
            self._enqueue(intent)
        if self._pending or not self._drained.is_set():
            await self._drained.wait()

    async def close(self, flush: bool = True) -> None:
        """Stop the worker, optionally running what is still queued first."""
        if flush:
            await self.flush()
        self.cancel()
        if self._worker is not None:
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

    def cancel(self, error: Optional[Exception] = None) -> None:
        """Drop armed timers and pending intents and stop the worker.

        Callers waiting on an explicit intent that never ran (or was cut off)
        get error raised at them when one is given; otherwise their wait is
        cancelled.
        """
        self._closed = True
        for kind in list(self._timers):
            self._cancel_timer(kind)
        dropped = list(self._pending)
        if self._current is not None:
            dropped.append(self._current)
        for intent in dropped:
            if intent.future is not None and not intent.future.done():
                if error is not None:
                    intent.future.set_exception(error)
                else:
                    intent.future.cancel()
        self._pending.clear()
        self._drained.set()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
        logger.debug("Queue for document %s closed", self.document_id)
