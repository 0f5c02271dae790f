# src/catch2adapter/state.py
#
"""
Defines the dynamic state kept for each filesystem watch subscription.
"""

import asyncio
from enum import Enum, auto

import structlog
from attrs import field, mutable

from catch2adapter.protocols import WatchHandle

# Logger specific to state management
log: structlog.stdlib.BoundLogger = structlog.get_logger("state")


class SubscriptionStatus(Enum):
    """Enumeration of the states a watch subscription moves through."""

    WATCHING_FILE = auto()  # Binary exists; waiting for change/delete.
    WATCHING_PATTERN = auto()  # Nothing (or not everything) matched yet; waiting for creation.
    PENDING_DELETE = auto()  # Delete seen, debounce timer running.
    DISPOSED = auto()  # Handle released; never triggers again.


@mutable(slots=True)
class WatchSubscription:
    """
    Holds the dynamic state for one watched binary or pattern.

    This class is mutable because the debounce timer handle and status are
    replaced as notifications arrive.
    """

    key: str = field()
    pattern: str = field()
    config_index: int = field()
    watch_timeout_sec: float = field()
    status: SubscriptionStatus = field(default=SubscriptionStatus.WATCHING_FILE)
    handle: WatchHandle | None = field(default=None, repr=False)
    # Pending debounce timer; cancelled and replaced as a unit.
    debounce_timer_handle: asyncio.TimerHandle | None = field(default=None, repr=False)
    pending_path: str | None = field(default=None)

    @property
    def is_disposed(self) -> bool:
        return self.status is SubscriptionStatus.DISPOSED

    @property
    def is_file_watch(self) -> bool:
        return self.status in (SubscriptionStatus.WATCHING_FILE, SubscriptionStatus.PENDING_DELETE)

    def update_status(self, new_status: SubscriptionStatus) -> None:
        old_status = self.status
        if old_status == new_status:
            return
        if old_status is SubscriptionStatus.DISPOSED:
            log.warning("Ignoring status change on disposed subscription", key=self.key, new_status=new_status.name)
            return
        self.status = new_status
        log.debug(
            "Subscription status changed",
            key=self.key,
            old_status=old_status.name,
            new_status=new_status.name,
        )

    def set_debounce_timer(self, handle: asyncio.TimerHandle, path: str) -> None:
        """Stores the handle for a scheduled debounce timer, cancelling any previous one."""
        self.cancel_debounce_timer()
        self.debounce_timer_handle = handle
        self.pending_path = path
        self.update_status(SubscriptionStatus.PENDING_DELETE)
        log.debug("Debounce timer set", key=self.key, delay=self.watch_timeout_sec)

    def cancel_debounce_timer(self) -> bool:
        """Cancels the pending debounce timer; returns True if one was pending."""
        if self.debounce_timer_handle is None:
            return False
        self.debounce_timer_handle.cancel()
        self.debounce_timer_handle = None
        self.pending_path = None
        if self.status is SubscriptionStatus.PENDING_DELETE:
            self.update_status(SubscriptionStatus.WATCHING_FILE)
        log.debug("Debounce timer cancelled", key=self.key)
        return True

    def dispose(self) -> None:
        """Cancels any pending timer and releases the watch handle."""
        if self.is_disposed:
            return
        self.cancel_debounce_timer()
        if self.handle is not None:
            try:
                self.handle.dispose()
            finally:
                self.handle = None
        self.status = SubscriptionStatus.DISPOSED
        log.debug("Subscription disposed", key=self.key)


# 🔼⚙️
