"""Debounced, cancelable search pipeline for the search UI.

Each query edit restarts a single-shot debounce timer. When input settles the
controller cancels whatever request is still outstanding and issues exactly
one new request. Every request gets a sequence number and a cancellation
token; a response whose number is no longer the latest is discarded, so a slow
reply for "ma" can never overwrite the results for "mad".

State changes are pushed to subscribers as immutable ``SearchState``
snapshots. Call ``aclose()`` (or use ``async with``) on teardown so no timer,
task or listener outlives the controller.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from nftscout.core.cancellation import CancellationToken
from nftscout.core.config import get_settings
from nftscout.core.errors import OperationCancelledError, SearchError
from nftscout.schemas.search import SearchResult
from nftscout.services.search_client import SearchClient

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


@dataclass(frozen=True)
class SearchState:
    query: str = ""
    results: tuple[SearchResult, ...] = ()
    is_searching: bool = False
    error: str | None = None
    current_page: int = 1
    total_results: int = 0
    has_more: bool = False


Listener = Callable[[SearchState], None]


class SearchController:
    def __init__(
        self,
        client: SearchClient,
        debounce_ms: int | None = None,
        min_query_length: int | None = None,
        page_size: int | None = None,
        initial_page: int = 1,
        initial_query: str = "",
    ) -> None:
        settings = get_settings()
        self._client = client
        self.debounce_seconds = (
            settings.search_debounce_ms if debounce_ms is None else debounce_ms
        ) / 1000
        self.min_query_length = (
            settings.search_min_query_length if min_query_length is None else min_query_length
        )
        self.page_size = settings.search_page_size if page_size is None else page_size
        self.initial_page = initial_page

        self._state = SearchState(current_page=initial_page)
        self._listeners: list[Listener] = []
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._token: CancellationToken | None = None
        self._request_id = 0
        self._last_query = ""
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

        if initial_query:
            self.set_query(initial_query)

    # -- read-only state -----------------------------------------------------

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def query(self) -> str:
        return self._state.query

    @property
    def results(self) -> list[SearchResult]:
        return list(self._state.results)

    @property
    def is_searching(self) -> bool:
        return self._state.is_searching

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def current_page(self) -> int:
        return self._state.current_page

    @property
    def total_results(self) -> int:
        return self._state.total_results

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Search state listener failed")

    # -- query input ---------------------------------------------------------

    @property
    def _min_length(self) -> int:
        # An empty query never hits the network, whatever the configured minimum
        return max(self.min_query_length, 1)

    def set_query(self, query: str) -> None:
        """Store the raw input and (re)start the debounce timer.

        Must be called from within the running event loop.
        """
        if self._closed:
            raise RuntimeError("SearchController is closed")
        self._update(query=query)
        self._cancel_debounce()

        if len(query.strip()) < self._min_length:
            self._clear_results()
            return

        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self.debounce_seconds, self._on_debounce)

    def _on_debounce(self) -> None:
        self._debounce_handle = None
        trimmed = self._state.query.strip()
        if trimmed == self._last_query:
            return
        self._spawn(self.search(trimmed))

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # -- searching -----------------------------------------------------------

    async def search(self, query: str, page: int = 1) -> None:
        """Search immediately (no debounce), replacing the current results."""
        trimmed = query.strip()
        if len(trimmed) < self._min_length:
            self._clear_results()
            return
        self._last_query = trimmed
        await self._perform_search(trimmed, page, append=False)

    async def load_more(self) -> None:
        """Fetch the next page and append it; no-op when there is nothing to load."""
        query = self._state.query.strip()
        if self._state.is_searching or not self._state.has_more or not query:
            return
        await self._perform_search(query, self._state.current_page + 1, append=True)

    async def _perform_search(self, query: str, page: int, append: bool) -> None:
        self._cancel_active()
        self._request_id += 1
        request_id = self._request_id
        token = CancellationToken()
        self._token = token
        self._update(is_searching=True, error=None)

        try:
            response = await self._client.search(
                query, page=page, limit=self.page_size, token=token
            )
        except OperationCancelledError:
            logger.debug("Search for %r cancelled", query)
            return
        except SearchError as e:
            if request_id == self._request_id:
                self._fail(str(e))
            return
        except Exception:
            logger.exception("Search error for %r", query)
            if request_id == self._request_id:
                self._fail(UNEXPECTED_ERROR_MESSAGE)
            return
        finally:
            # Only the latest request owns the searching flag
            if request_id == self._request_id:
                self._token = None
                self._update(is_searching=False)

        if request_id != self._request_id:
            logger.debug("Discarding stale response for %r", query)
            return

        if append and page > 1:
            results = self._state.results + tuple(response.results)
        else:
            results = tuple(response.results)
        self._update(
            results=results,
            current_page=response.page,
            total_results=response.total,
            has_more=response.has_more,
            error=None,
        )

    def _fail(self, message: str) -> None:
        logger.info("Search failed: %s", message)
        self._update(results=(), total_results=0, has_more=False, error=message)

    def _cancel_active(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        # Any response still on its way is stale from here on
        self._request_id += 1

    def _clear_results(self) -> None:
        self._cancel_active()
        self._last_query = ""
        self._update(
            results=(),
            is_searching=False,
            error=None,
            current_page=self.initial_page,
            total_results=0,
            has_more=False,
        )

    # -- control -------------------------------------------------------------

    def cancel_pending_requests(self) -> None:
        """Cancel the outstanding request without touching displayed results."""
        self._cancel_active()
        if self._state.is_searching:
            self._update(is_searching=False)

    def clear_search(self) -> None:
        self._cancel_debounce()
        self._cancel_active()
        self._last_query = ""
        self._state = SearchState(current_page=self.initial_page)
        self._update()

    def clear_error(self) -> None:
        self._update(error=None)

    async def wait_idle(self) -> None:
        """Wait until the debounce timer has fired and every search has settled."""
        loop = asyncio.get_running_loop()
        while self._debounce_handle is not None or self._tasks:
            if self._debounce_handle is not None:
                await asyncio.sleep(max(self._debounce_handle.when() - loop.time(), 0))
            else:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Release the debounce timer, in-flight requests and listeners."""
        self._closed = True
        self._cancel_debounce()
        self._cancel_active()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._listeners.clear()

    async def __aenter__(self) -> "SearchController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
