"""Tests for the pending action store: uniqueness, single transition, expiry."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from reminderbot.core.actions.pending_store import PendingActionStore, PendingNotification
from reminderbot.core.actions.state_machine import FlowState
from reminderbot.shared.errors import InvalidTransition, StoreConflict

T0 = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)
TTL = timedelta(minutes=5)


def _pending(request_id: str = "req-1", **kwargs) -> PendingNotification:
    defaults = dict(
        request_id=request_id,
        text="file taxes",
        user_id="U",
        channel_id="C",
        created_at=T0,
        original_text="remind me to file taxes",
    )
    defaults.update(kwargs)
    return PendingNotification(**defaults)


# ---------------------------------------------------------------------------
# put / get / remove / update
# ---------------------------------------------------------------------------


class TestBasics:
    def test_put_then_get(self, store):
        store.put(_pending())
        assert store.get("req-1").text == "file taxes"
        assert len(store) == 1
        assert "req-1" in store

    def test_second_put_conflicts(self, store):
        store.put(_pending())
        with pytest.raises(StoreConflict) as exc:
            store.put(_pending(text="other"))
        assert exc.value.request_id == "req-1"
        assert store.get("req-1").text == "file taxes"

    def test_finished_id_cannot_be_reused(self, store):
        store.put(_pending())
        store.confirm("req-1")
        with pytest.raises(StoreConflict):
            store.put(_pending())

    def test_only_pending_entries_can_be_put(self, store):
        with pytest.raises(InvalidTransition):
            store.put(_pending(state=FlowState.CONFIRMED))

    def test_remove_is_idempotent(self, store):
        store.put(_pending())
        store.remove("req-1")
        store.remove("req-1")
        store.remove("never-existed")
        assert store.get("req-1") is None

    def test_update_swaps_snapshot(self, store):
        original = _pending()
        store.put(original)

        updated = store.update("req-1", text="file taxes by 5pm", extra_context="it's at 5")

        assert updated.text == "file taxes by 5pm"
        assert store.get("req-1") == updated
        # Snapshots are immutable; the old one is unchanged
        assert original.text == "file taxes"

    def test_update_missing_returns_none(self, store):
        assert store.update("nope", text="x") is None

    def test_update_refuses_identity_fields(self, store):
        store.put(_pending())
        with pytest.raises(ValueError):
            store.update("req-1", channel_id="elsewhere")

    def test_snapshots_are_frozen(self):
        with pytest.raises(Exception):
            _pending().text = "changed"


# ---------------------------------------------------------------------------
# transition
# ---------------------------------------------------------------------------


class TestTransition:
    def test_confirm_removes_entry(self, store):
        store.put(_pending())

        outcome = store.confirm("req-1", user_id="U")

        assert outcome.applied
        assert outcome.state is FlowState.CONFIRMED
        assert outcome.pending.state is FlowState.CONFIRMED
        assert store.get("req-1") is None
        assert store.finished_state("req-1") is FlowState.CONFIRMED

    def test_double_confirm_applies_once(self, store):
        store.put(_pending())

        first = store.confirm("req-1", user_id="U")
        second = store.confirm("req-1", user_id="U")

        assert first.applied
        assert not second.applied
        assert second.reason == "terminal"
        assert second.state is FlowState.CONFIRMED

    def test_cancel_after_confirm_is_noop(self, store):
        store.put(_pending())
        store.confirm("req-1")
        outcome = store.cancel("req-1")
        assert not outcome.applied
        assert store.finished_state("req-1") is FlowState.CONFIRMED

    def test_missing_id(self, store):
        outcome = store.confirm("nope")
        assert not outcome.applied
        assert outcome.reason == "missing"
        assert outcome.state is None

    def test_other_user_is_rejected(self, store):
        store.put(_pending())
        outcome = store.confirm("req-1", user_id="someone-else")
        assert not outcome.applied
        assert outcome.reason == "forbidden"
        assert store.get("req-1").state is FlowState.PENDING

    def test_non_terminal_target_is_invalid(self, store):
        store.put(_pending())
        with pytest.raises(InvalidTransition):
            store.transition("req-1", FlowState.ROUTING)

    def test_concurrent_confirms_have_one_winner(self, store):
        store.put(_pending())
        barrier = threading.Barrier(8)

        def confirm():
            barrier.wait()
            return store.confirm("req-1", user_id="U").applied

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: confirm(), range(8)))

        assert results.count(True) == 1

    def test_history_is_bounded(self):
        store = PendingActionStore(history_size=2)
        for i in range(3):
            store.put(_pending(f"req-{i}"))
            store.cancel(f"req-{i}")
        assert store.finished_state("req-0") is None
        assert store.finished_state("req-2") is FlowState.CANCELLED


# ---------------------------------------------------------------------------
# expiry
# ---------------------------------------------------------------------------


class TestExpiry:
    def test_sweep_before_ttl_keeps_entry(self, store):
        store.put(_pending())
        assert store.sweep_expired(T0 + TTL - timedelta(seconds=1), TTL) == []
        assert store.get("req-1") is not None

    def test_sweep_at_ttl_expires_and_removes(self, store):
        store.put(_pending())
        store.put(_pending("req-2", created_at=T0 + timedelta(minutes=3)))

        expired = store.sweep_expired(T0 + TTL, TTL)

        assert [p.request_id for p in expired] == ["req-1"]
        assert expired[0].state is FlowState.EXPIRED
        assert expired[0].channel_id == "C"
        assert store.get("req-1") is None
        assert store.get("req-2") is not None
        assert store.finished_state("req-1") is FlowState.EXPIRED

    def test_confirm_after_sweep_sees_expired(self, store):
        store.put(_pending())
        store.sweep_expired(T0 + TTL, TTL)
        outcome = store.confirm("req-1")
        assert not outcome.applied
        assert outcome.state is FlowState.EXPIRED

    def test_entry_is_gone_past_ttl_even_before_sweep(self):
        store = PendingActionStore(ttl=TTL)
        store.put(_pending())

        assert store.get("req-1", now=T0 + TTL) is None
        assert store.finished_state("req-1") is FlowState.EXPIRED
        # Whoever read it reports the timeout; the sweep does not repeat it
        assert store.sweep_expired(T0 + TTL, TTL) == []

    def test_update_past_ttl_expires_entry(self):
        store = PendingActionStore(ttl=TTL)
        store.put(_pending(created_at=datetime.now(timezone.utc) - TTL - timedelta(seconds=1)))

        assert store.update("req-1", text="file taxes today") is None
        assert store.finished_state("req-1") is FlowState.EXPIRED
        assert store.sweep_expired(datetime.now(timezone.utc), TTL) == []

    def test_confirm_past_ttl_is_not_applied(self):
        store = PendingActionStore(ttl=TTL)
        store.put(_pending())
        outcome = store.transition("req-1", FlowState.CONFIRMED, now=T0 + TTL + timedelta(seconds=1))
        assert not outcome.applied
        assert outcome.state is FlowState.EXPIRED
        assert outcome.pending.channel_id == "C"
