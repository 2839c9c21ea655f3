"""Tests for the rotating key pool manager."""

from datetime import UTC, datetime, timedelta

import pytest

from conftest import START, FailingStore, FakeClock, rate_limited
from websy.core.exceptions import (
    ConfigurationError,
    PersistenceError,
    ProviderError,
    ProviderErrorKind,
)
from websy.core.key_pool import EXHAUSTED_MESSAGE, KeyPoolManager
from websy.db.key_pool_store import InMemoryKeyPoolStore
from websy.models.key_pool import Credential, PoolState


def _active_indices(manager: KeyPoolManager) -> list[int]:
    return [i for i, c in enumerate(manager.state.credentials) if c.is_active]


def test_initialize_builds_fresh_pool(make_pool, store: InMemoryKeyPoolStore) -> None:
    manager = make_pool(["a", "b", "c"])

    state = manager.state
    assert state.current_index == 0
    assert [c.key for c in state.credentials] == ["a", "b", "c"]
    assert _active_indices(manager) == [0]
    assert all(c.estimated_remaining == 1500 for c in state.credentials)
    assert state.total_requests == 0
    assert state.last_reset_at == START
    assert store.save_count == 1


def test_initialize_persists_camel_case_record(make_pool, store: InMemoryKeyPoolStore) -> None:
    make_pool(["a", "b"])

    record = store.record
    assert record["currentIndex"] == 0
    assert record["totalRequests"] == 0
    assert record["credentials"][0]["isActive"] is True
    assert record["credentials"][1]["isRateLimited"] is False
    assert record["lastResetAt"].startswith("2026-10-19T09:00:00")
    assert "isLoading" not in record


def test_initialize_without_keys_raises(store: InMemoryKeyPoolStore, clock: FakeClock) -> None:
    manager = KeyPoolManager(store, clock=clock)

    with pytest.raises(ConfigurationError):
        manager.initialize(["", ""])
    assert not manager.initialized
    assert store.save_count == 0


def test_initialize_restores_recent_record(clock: FakeClock) -> None:
    persisted = PoolState(
        current_index=1,
        credentials=[
            Credential(key="a", is_rate_limited=True, request_count=2, estimated_remaining=10),
            Credential(key="b", is_active=True, request_count=4, estimated_remaining=20),
        ],
        total_requests=6,
        last_reset_at=START - timedelta(hours=3),
        version=7,
    )
    store = InMemoryKeyPoolStore(persisted)
    manager = KeyPoolManager(store, clock=clock)

    state = manager.initialize(["a", "b", "c"])

    assert state.current_index == 1
    assert state.credentials[0].is_rate_limited
    assert state.credentials[1].request_count == 4
    assert state.credentials[2].estimated_remaining == 1500
    assert _active_indices(manager) == [1]
    assert state.total_requests == 6
    assert state.last_reset_at == START - timedelta(hours=3)
    assert state.version == 8


def test_initialize_follows_reordered_keys_by_value(clock: FakeClock) -> None:
    persisted = PoolState(
        current_index=0,
        credentials=[
            Credential(key="a", is_active=True, is_rate_limited=True, request_count=3),
            Credential(key="b", request_count=5),
        ],
        total_requests=8,
        last_reset_at=START - timedelta(hours=2),
    )
    manager = KeyPoolManager(InMemoryKeyPoolStore(persisted), clock=clock)

    state = manager.initialize(["b", "a"])

    assert [(c.key, c.request_count, c.is_rate_limited, c.is_active) for c in state.credentials] == [
        ("b", 5, False, True),
        ("a", 3, True, False),
    ]
    assert state.current_index == 0
    assert _active_indices(manager) == [0]
    assert state.total_requests == 8


def test_initialize_clamps_out_of_range_index(clock: FakeClock) -> None:
    persisted = PoolState(
        current_index=2,
        credentials=[Credential(key=k) for k in ("a", "b", "c")],
        last_reset_at=START - timedelta(hours=1),
    )
    manager = KeyPoolManager(InMemoryKeyPoolStore(persisted), clock=clock)

    state = manager.initialize(["a", "b"])

    assert state.current_index == 0
    assert _active_indices(manager) == [0]


def test_initialize_discards_stale_record(clock: FakeClock) -> None:
    persisted = PoolState(
        current_index=1,
        credentials=[
            Credential(key="a", is_rate_limited=True, request_count=9),
            Credential(key="b", is_active=True),
        ],
        total_requests=9,
        last_reset_at=START - timedelta(hours=25),
    )
    manager = KeyPoolManager(InMemoryKeyPoolStore(persisted), clock=clock)

    state = manager.initialize(["a", "b"])

    assert state.current_index == 0
    assert not state.credentials[0].is_rate_limited
    assert state.credentials[0].request_count == 0
    assert state.total_requests == 0
    assert state.last_reset_at == START


def test_record_success_updates_counters(make_pool, clock: FakeClock) -> None:
    manager = make_pool()
    clock.advance(minutes=5)

    manager.record_success(0)

    credential = manager.get_status(0)
    assert credential.request_count == 1
    assert credential.estimated_remaining == 1499
    assert credential.last_used_at == START + timedelta(minutes=5)
    assert credential.last_error is None
    assert manager.state.total_requests == 1


def test_record_failure_rate_limit_marks_credential(make_pool) -> None:
    manager = make_pool()

    manager.record_failure(0, rate_limited())

    credential = manager.get_status(0)
    assert credential.is_rate_limited
    assert credential.last_used_at == START
    assert credential.last_error == "quota exceeded"
    assert manager.is_rate_limited(0)


def test_record_failure_other_kind_keeps_credential_usable(make_pool) -> None:
    manager = make_pool()

    manager.record_failure(0, ProviderError(ProviderErrorKind.SERVER_ERROR, "boom"))

    credential = manager.get_status(0)
    assert not credential.is_rate_limited
    assert credential.last_error == "boom"
    assert manager.active_index == 0


def test_switch_to_next_advances_index(make_pool) -> None:
    manager = make_pool()

    result = manager.switch_to_next()

    assert result.ok
    assert result.index == 1
    assert manager.active_index == 1
    assert manager.active_key == "k1"
    assert _active_indices(manager) == [1]


def test_switch_to_next_reports_exhaustion_at_ring_end(make_pool) -> None:
    manager = make_pool(["k0", "k1"])
    manager.switch_to_next()

    result = manager.switch_to_next()

    assert not result.ok
    assert result.reason == "exhausted"
    assert result.index == 1
    assert manager.active_index == 1
    assert manager.state.error == EXHAUSTED_MESSAGE
    assert _active_indices(manager) == [1]


def test_single_key_pool_is_exhausted_on_first_switch(make_pool) -> None:
    manager = make_pool(["only"])

    result = manager.switch_to_next()

    assert not result.ok
    assert manager.active_index == 0


def test_reset_all_clears_health(make_pool, clock: FakeClock) -> None:
    manager = make_pool(["k0", "k1"])
    manager.record_failure(0, rate_limited())
    manager.switch_to_next()
    manager.record_failure(1, rate_limited())
    manager.switch_to_next()
    clock.advance(hours=1)

    manager.reset_all()

    state = manager.state
    assert state.current_index == 0
    assert state.error is None
    assert not any(c.is_rate_limited for c in state.credentials)
    assert _active_indices(manager) == [0]
    assert state.last_reset_at == START + timedelta(hours=1)


def test_reset_all_never_moves_reset_time_backwards(make_pool, clock: FakeClock) -> None:
    manager = make_pool()
    clock.now = START - timedelta(days=1)

    manager.reset_all()

    assert manager.state.last_reset_at == START


def test_reset_if_due_respects_interval(make_pool, clock: FakeClock) -> None:
    manager = make_pool()
    manager.switch_to_next()

    clock.advance(hours=23, minutes=59)
    assert manager.reset_if_due() is False
    assert manager.active_index == 1

    clock.advance(minutes=1)
    assert manager.reset_if_due() is True
    assert manager.active_index == 0


def test_failed_save_leaves_state_untouched(clock: FakeClock) -> None:
    store = FailingStore()
    manager = KeyPoolManager(store, clock=clock)
    manager.initialize(["k0", "k1"])
    store.fail = True

    with pytest.raises(PersistenceError):
        manager.record_success(0)

    assert manager.get_status(0).request_count == 0
    assert manager.state.total_requests == 0


def test_every_mutation_is_persisted(make_pool, store: InMemoryKeyPoolStore) -> None:
    manager = make_pool()
    saves = store.save_count

    manager.record_success(0)
    manager.record_failure(0, rate_limited())
    manager.switch_to_next()
    manager.reset_all()

    assert store.save_count == saves + 4
    assert store.record["version"] == manager.state.version


def test_set_loading_is_not_persisted(make_pool, store: InMemoryKeyPoolStore) -> None:
    manager = make_pool()
    saves = store.save_count

    manager.set_loading(True)

    assert manager.state.is_loading
    assert store.save_count == saves


def test_telemetry_masks_keys(make_pool) -> None:
    manager = make_pool(["secret-key-1234", "other-key-9876"])

    telemetry = manager.telemetry()

    assert [c.masked_key for c in telemetry.credentials] == ["****1234", "****9876"]
    assert [c.slot for c in telemetry.credentials] == [1, 2]
    dumped = telemetry.model_dump_json(by_alias=True)
    assert "secret-key-1234" not in dumped
    assert '"currentIndex":0' in dumped


def test_operations_before_initialize_raise(store: InMemoryKeyPoolStore) -> None:
    manager = KeyPoolManager(store)

    assert manager.size == 0
    with pytest.raises(ConfigurationError):
        manager.switch_to_next()


def test_naive_persisted_timestamps_are_treated_as_utc(clock: FakeClock) -> None:
    naive = datetime(2026, 10, 19, 8, 0)
    persisted = PoolState(credentials=[Credential(key="a", is_active=True)], last_reset_at=naive)
    manager = KeyPoolManager(InMemoryKeyPoolStore(persisted), clock=clock)

    state = manager.initialize(["a"])

    assert state.last_reset_at == datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
