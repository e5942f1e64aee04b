"""
Dependency tracker for one top-level load.

Tracks every url a load depends on and folds their completions into a
single terminal event:

    item:       PENDING -> COMPLETED | FAILED
    aggregate:  ACTIVE  -> ALL_COMPLETED | ABORTED

The tracker is synchronous and owns no I/O. The aggregate success
callback fires exactly once, when the last pending url completes; the
failure callback fires exactly once, on the first failure. Once terminal,
every further call is ignored.
"""

from enum import Enum
import logging
from typing import Callable, Dict, List, Optional

from ..core.errors import LoaderStateError, OgreMaxError
from ..core.types import ProgressCallback

logger = logging.getLogger(__name__)


class ItemState(str, Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'


class AggregateState(str, Enum):
    ACTIVE = 'active'
    ALL_COMPLETED = 'all_completed'
    ABORTED = 'aborted'


class DependencyTracker:
    """
    Pending set plus outstanding counter of one load.

    Args:
        on_complete: Called with no arguments when every registered url completed
        on_error: Called with the first error
        on_progress: Called with (loaded, total) after each completion
    """

    def __init__(
        self,
        on_complete: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[OgreMaxError], None]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.on_complete = on_complete
        self.on_error = on_error
        self.on_progress = on_progress

        self.items: Dict[str, ItemState] = {}
        self.state = AggregateState.ACTIVE
        self.outstanding_count = 0
        self.error: Optional[OgreMaxError] = None

    @property
    def is_terminal(self) -> bool:
        return self.state != AggregateState.ACTIVE

    @property
    def loaded(self) -> int:
        return sum(1 for state in self.items.values() if state == ItemState.COMPLETED)

    @property
    def total(self) -> int:
        return len(self.items)

    def outstanding(self) -> List[str]:
        """Urls still pending, in registration order."""
        return [url for url, state in self.items.items() if state == ItemState.PENDING]

    def register(self, url: str) -> bool:
        """
        Start tracking ``url``.

        Returns:
            True if the url was added, False if it was already tracked or
            the aggregate is terminal
        """
        if self.is_terminal:
            logger.debug(f"Ignoring register({url}) after {self.state.value}")
            return False
        if url in self.items:
            return False

        self.items[url] = ItemState.PENDING
        self.outstanding_count += 1
        logger.debug(f"Tracking {url} ({self.outstanding_count} outstanding)")
        return True

    def complete(self, url: str) -> None:
        """
        Mark ``url`` completed; fires the aggregate success at zero outstanding.

        Raises:
            LoaderStateError: If ``url`` is not a pending item of an active load
        """
        if self.is_terminal:
            logger.debug(f"Ignoring complete({url}) after {self.state.value}")
            return
        if self.items.get(url) != ItemState.PENDING:
            raise LoaderStateError(f"complete() on a url that is not pending: {url}", url=url)

        self.items[url] = ItemState.COMPLETED
        self.outstanding_count -= 1

        if self.on_progress is not None:
            self.on_progress(self.loaded, self.total)

        if self.outstanding_count == 0:
            self.state = AggregateState.ALL_COMPLETED
            logger.debug(f"All {self.total} dependencies completed")
            if self.on_complete is not None:
                self.on_complete()

    def fail(self, url: str, error: OgreMaxError) -> None:
        """Abort the aggregate with ``error``; other pending urls stay outstanding."""
        if self.is_terminal:
            logger.debug(f"Ignoring fail({url}) after {self.state.value}: {error}")
            return

        if url in self.items:
            self.items[url] = ItemState.FAILED
        self.state = AggregateState.ABORTED
        self.error = error

        pending = self.outstanding()
        if pending:
            logger.warning(f"Load aborted by {url}; left outstanding: {', '.join(pending)}")
        if self.on_error is not None:
            self.on_error(error)
