from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Hashable, Iterable, TypeVar

from .errors import NormalizedError, normalize_error


logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Hashable)

Fetcher = Callable[[Any], Awaitable[Any]]
ErrorCallback = Callable[[NormalizedError], None]

_CLOSED = object()
_UNSET = object()


@dataclass(frozen=True)
class SyncState:
    loading: bool = False
    items: tuple = ()
    error: NormalizedError | None = None


def _as_items(payload: Any) -> tuple:
    if payload is None:
        return ()
    if isinstance(payload, (list, tuple)):
        return tuple(payload)
    if isinstance(payload, Iterable) and not isinstance(payload, (str, bytes, dict)):
        return tuple(payload)
    raise TypeError(f"Fetch returned {type(payload).__name__}, expected a sequence.")


class _SyncedList:
    """Shared state machine for lists filled by a remote fetch.

    Each fetch carries a generation number. Only the completion of the
    latest generation, while the owner is still mounted, may replace the
    state; everything else is dropped.
    """

    def __init__(
        self,
        fetch: Fetcher,
        *,
        fallback_message: str,
        transform: Callable[[Any], Iterable[Any]] | None = None,
        on_error: ErrorCallback | None = None,
        name: str = "list",
    ):
        self._fetch = fetch
        self._fallback_message = fallback_message
        self._transform = transform
        self._on_error = on_error
        self.name = name
        self._state = SyncState()
        self._generation = 0
        self._mounted = True
        self._tasks: set[asyncio.Task] = set()
        self._subscribers: list[asyncio.Queue] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def generation(self) -> int:
        return self._generation

    def _publish(self, state: SyncState) -> None:
        self._state = state
        for queue in list(self._subscribers):
            queue.put_nowait(state)

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    def _issue(self, selection: Any) -> asyncio.Task:
        self._generation += 1
        generation = self._generation
        self._publish(replace(self._state, loading=True))
        task = asyncio.get_running_loop().create_task(self._run(generation, selection))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, generation: int, selection: Any) -> None:
        try:
            payload = await self._fetch(selection)
            items = _as_items(self._transform(payload) if self._transform else payload)
        except Exception as exc:
            if not self._is_current(generation):
                logger.debug("Dropped stale %s failure for %r: %s", self.name, selection, exc)
                return
            logger.warning("Fetching %s for %r failed: %s", self.name, selection, exc)
            error = normalize_error(exc, self._fallback_message)
            self._publish(replace(self._state, loading=False, error=error))
            if self._on_error is not None:
                self._on_error(error)
            return

        if not self._is_current(generation):
            logger.debug("Dropped stale %s response for %r.", self.name, selection)
            return
        self._publish(SyncState(loading=False, items=items, error=None))

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def subscribe(self) -> AsyncIterator[SyncState]:
        """Yield the current state, then every transition until unmount."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            yield self._state
            if not self._mounted:
                return
            while True:
                state = await queue.get()
                if state is _CLOSED:
                    return
                yield state
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def unmount(self) -> None:
        if not self._mounted:
            return
        self._mounted = False
        for queue in list(self._subscribers):
            queue.put_nowait(_CLOSED)
        self._subscribers.clear()


class FocusSyncedList(_SyncedList, Generic[S]):
    """Keeps a remote list in step with a selection key and screen visibility.

    ``on_visible`` fetches once for the current selection every time the
    screen (re)appears; ``select`` while visible refetches and makes any
    in-flight response for the previous selection stale.
    """

    def __init__(
        self,
        fetch: Fetcher,
        *,
        fallback_message: str,
        selection: S | None = None,
        transform: Callable[[Any], Iterable[Any]] | None = None,
        on_error: ErrorCallback | None = None,
        name: str = "list",
    ):
        super().__init__(
            fetch,
            fallback_message=fallback_message,
            transform=transform,
            on_error=on_error,
            name=name,
        )
        self._selection = selection
        self._visible = False

    @property
    def selection(self) -> S | None:
        return self._selection

    @property
    def visible(self) -> bool:
        return self._visible

    def on_visible(self, selection: Any = _UNSET) -> asyncio.Task:
        if not self._mounted:
            raise RuntimeError(f"{self.name} is unmounted.")
        if selection is not _UNSET:
            self._selection = selection
        self._visible = True
        return self._issue(self._selection)

    def on_hidden(self) -> None:
        self._visible = False

    def select(self, selection: S) -> asyncio.Task | None:
        if not self._mounted:
            raise RuntimeError(f"{self.name} is unmounted.")
        if selection == self._selection:
            return None
        self._selection = selection
        if not self._visible:
            return None
        return self._issue(selection)

    def refresh(self) -> asyncio.Task | None:
        if not self._mounted or not self._visible:
            return None
        return self._issue(self._selection)

    def unmount(self) -> None:
        self._visible = False
        super().unmount()


class OnceFetch(_SyncedList):
    """A list fetched once per mount, independent of any selection."""

    def __init__(self, fetch: Callable[[], Awaitable[Any]], **kwargs: Any):
        super().__init__(lambda _selection: fetch(), **kwargs)
        self._started = False

    def start(self) -> asyncio.Task | None:
        if self._started or not self._mounted:
            return None
        self._started = True
        return self._issue(None)
