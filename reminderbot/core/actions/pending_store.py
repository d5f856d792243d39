"""In-memory registry of notifications waiting for the user to confirm.

All mutation goes through a single lock-guarded object. Entries are frozen
snapshots; a transition swaps the snapshot and drops it from the live map in
one critical section, so concurrent or duplicated confirm/cancel callbacks
see exactly one winner. No method awaits, so the lock is never held across a
suspension point.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from pydantic import BaseModel, ConfigDict, Field

from reminderbot.core.actions.state_machine import FlowState, can_transition
from reminderbot.shared.errors import InvalidTransition, StoreConflict

logger = structlog.get_logger()

# Fields fixed at creation
_IMMUTABLE_FIELDS = frozenset({"request_id", "user_id", "channel_id", "created_at", "state"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingNotification(BaseModel):
    """A notification awaiting Confirm / Cancel."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    text: str
    user_id: str
    channel_id: str
    scheduled_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    state: FlowState = FlowState.PENDING
    original_text: str = ""
    extra_context: str | None = None
    message_id: str | None = None

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return self.created_at + ttl <= now


@dataclass(frozen=True)
class Transition:
    """Outcome of a compare-and-transition attempt."""

    request_id: str
    applied: bool
    # State observed after the attempt; None when the id was never seen
    state: FlowState | None
    pending: PendingNotification | None
    reason: str  # applied | missing | terminal | forbidden


class PendingActionStore:
    """Thread-safe map of ``request_id`` -> ``PendingNotification``.

    With *ttl* set, entries past their deadline are treated as expired on
    read even before the next sweep runs. The caller that observes such an
    entry owns telling the user; the sweep reports only what it expires.
    """

    def __init__(self, ttl: timedelta | None = None, history_size: int = 1024):
        self.ttl = ttl
        self._lock = threading.Lock()
        self._entries: dict[str, PendingNotification] = {}
        # Terminal states of recently finished requests, oldest first
        self._finished: OrderedDict[str, FlowState] = OrderedDict()
        self._history_size = history_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._entries

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def put(self, pending: PendingNotification) -> None:
        """Insert a new pending entry. Raises ``StoreConflict`` on a reused id."""
        with self._lock:
            if pending.request_id in self._entries or pending.request_id in self._finished:
                raise StoreConflict(pending.request_id)
            if pending.state is not FlowState.PENDING:
                raise InvalidTransition(FlowState.ROUTING.value, pending.state.value)
            self._entries[pending.request_id] = pending
        logger.info("pending_stored", request_id=pending.request_id, user_id=pending.user_id)

    def get(self, request_id: str, now: datetime | None = None) -> PendingNotification | None:
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None:
                return None
            if self._lazily_expire(entry, now or _utcnow()):
                self._finish(entry, FlowState.EXPIRED)
                return None
            return entry

    def finished_state(self, request_id: str) -> FlowState | None:
        """Terminal state of a recently finished request, if remembered."""
        with self._lock:
            return self._finished.get(request_id)

    def remove(self, request_id: str) -> None:
        """Drop an entry. Removing an absent id is a no-op."""
        with self._lock:
            self._entries.pop(request_id, None)

    def update(self, request_id: str, **changes) -> PendingNotification | None:
        """Replace fields of a still-pending entry; ``None`` if there is none."""
        fixed = _IMMUTABLE_FIELDS.intersection(changes)
        if fixed:
            raise ValueError(f"cannot change {', '.join(sorted(fixed))}")
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None:
                return None
            if self._lazily_expire(entry, _utcnow()):
                self._finish(entry, FlowState.EXPIRED)
                return None
            updated = entry.model_copy(update=changes)
            self._entries[request_id] = updated
            return updated

    def transition(
        self,
        request_id: str,
        target: FlowState,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> Transition:
        """Move a pending entry to a terminal state, at most once.

        Later attempts on the same id are reported as ``terminal`` no-ops.
        Attempts by someone other than the requesting user are ``forbidden``.
        """
        if not can_transition(FlowState.PENDING, target):
            raise InvalidTransition(FlowState.PENDING.value, target.value)

        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None:
                finished = self._finished.get(request_id)
                reason = "terminal" if finished is not None else "missing"
                return Transition(request_id, False, finished, None, reason)

            if user_id is not None and entry.user_id != user_id:
                return Transition(request_id, False, entry.state, entry, "forbidden")

            if self._lazily_expire(entry, now or _utcnow()):
                expired = self._finish(entry, FlowState.EXPIRED)
                return Transition(request_id, False, FlowState.EXPIRED, expired, "terminal")

            updated = self._finish(entry, target)
        logger.info("pending_transitioned", request_id=request_id, state=target.value)
        return Transition(request_id, True, target, updated, "applied")

    def confirm(self, request_id: str, user_id: str | None = None) -> Transition:
        return self.transition(request_id, FlowState.CONFIRMED, user_id=user_id)

    def cancel(self, request_id: str, user_id: str | None = None) -> Transition:
        return self.transition(request_id, FlowState.CANCELLED, user_id=user_id)

    def sweep_expired(self, now: datetime, ttl: timedelta) -> list[PendingNotification]:
        """Expire and remove every entry older than *ttl*.

        Returns the removed entries (each carries its ``request_id``). Entries
        already expired on read are not returned again.
        """
        with self._lock:
            expired = []
            for entry in list(self._entries.values()):
                if entry.is_expired(now, ttl):
                    expired.append(self._finish(entry, FlowState.EXPIRED))
        if expired:
            logger.info("pending_swept", count=len(expired))
        return expired

    # -- internals (call with the lock held) --------------------------------

    def _lazily_expire(self, entry: PendingNotification, now: datetime) -> bool:
        return self.ttl is not None and entry.is_expired(now, self.ttl)

    def _finish(self, entry: PendingNotification, state: FlowState) -> PendingNotification:
        finished = entry.model_copy(update={"state": state})
        del self._entries[entry.request_id]
        self._finished[entry.request_id] = state
        while len(self._finished) > self._history_size:
            self._finished.popitem(last=False)
        return finished
