"""
Integration tests for SyncEngine with the in-memory store and change feed.

Tests cover:
- Temporary-identifier replacement on create
- Rollback exactness for create, update and delete
- No-op on missing targets
- Ordering invariant across mixed operations
- Reorder (positions, partial failure)
- Initial load (filters, retries, pending temporaries, changes merged mid-load)
- Overlapping updates on one id
- Teardown discarding in-flight settlements
- Create racing its own change-stream confirmation
"""

import asyncio

import pytest

from dayplan_sync.engine import SyncEngine
from dayplan_sync.entities import (
    PoolTask,
    PoolTaskMapping,
    ScheduleItemMapping,
    is_temporary_id,
    make_temporary_id,
)
from dayplan_sync.errors import (
    EngineClosedError,
    NetworkError,
    NotFoundError,
    ServerError,
    UnauthorizedError,
    UnknownFieldError,
    UnsupportedOperationError,
    ValidationError,
)
from dayplan_sync.persistence import InMemoryPersistence
from dayplan_sync.stream import RawChange

OWNER = "user-1"
POOL = "task_pool"


def assert_sorted(engine):
    keys = [engine.mapping.sort_key(e) for e in engine.snapshot]
    assert keys == sorted(keys)
    ids = [engine.mapping.entity_id(e) for e in engine.snapshot]
    assert len(ids) == len(set(ids))


def seed_pool(api, *specs):
    """Seed pool rows from (id, position) pairs."""
    for id, position in specs:
        api.seed(POOL, OWNER, {"id": id, "title": id.upper(), "position": position, "completed": False})


class FixedIdApi(InMemoryPersistence):
    """Store that always assigns the durable id ``srv-1``."""

    async def insert(self, table, owner_id, row):
        await asyncio.sleep(0)
        return {**row, "id": "srv-1", "user_id": owner_id, "created_at": "2024-01-01T00:00:00+00:00"}


class SlowConfirmApi(InMemoryPersistence):
    """Store whose insert response arrives after its change notification."""

    async def insert(self, table, owner_id, row):
        stored = await super().insert(table, owner_id, row)
        await asyncio.sleep(0.02)
        return stored


class TestCreate:
    """Tests for optimistic create."""

    @pytest.fixture
    async def pool(self, api, feed, notifier, sleep):
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()
        yield engine
        await engine.close()

    @pytest.mark.asyncio
    async def test_temporary_id_replaced_by_server_id(self, feed, notifier, sleep):
        """create() shows a temporary entity at once, then exactly the srv-1 entity."""
        engine = SyncEngine(PoolTaskMapping(), OWNER, FixedIdApi(), feed, notifier=notifier, sleep=sleep)
        snapshots = []
        engine.subscribe(snapshots.append)

        saved = await engine.create({"title": "X"})

        first = snapshots[0]
        assert len(first) == 1
        assert is_temporary_id(first[0].id)
        assert first[0].title == "X"

        assert saved.id == "srv-1"
        assert [t.id for t in engine.snapshot] == ["srv-1"]
        assert not any(is_temporary_id(t.id) for t in engine.snapshot)
        await engine.close()

    @pytest.mark.asyncio
    async def test_optimistic_entity_visible_while_in_flight(self, pool, api):
        api.block()
        task = asyncio.create_task(pool.create({"title": "Write report"}))
        assert await api.wait_for_in_flight(1)

        (pending,) = pool.snapshot
        assert is_temporary_id(pending.id)
        assert pending.position == 1

        api.release()
        saved = await task

        assert [t.id for t in pool.snapshot] == [saved.id]
        assert api.get(POOL, saved.id)["title"] == "Write report"

    @pytest.mark.asyncio
    async def test_position_appends(self, pool, api):
        first = await pool.create({"title": "one"})
        second = await pool.create({"title": "two"})

        assert (first.position, second.position) == (1, 2)
        assert [t.id for t in pool.snapshot] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_success_notifies(self, pool, notifier):
        await pool.create({"title": "one"})

        assert len(notifier.infos) == 1
        assert notifier.errors == []

    @pytest.mark.asyncio
    async def test_permanent_failure_removes_temporary(self, pool, api, notifier):
        """A rejected insert leaves no dangling temporary entity."""
        api.fail_next(ValidationError("title too long"), operation="insert")

        with pytest.raises(ValidationError):
            await pool.create({"title": "X" * 500})

        assert pool.snapshot == ()
        assert len(notifier.errors) == 1
        assert api.calls[("insert", POOL)] == 1

    @pytest.mark.asyncio
    async def test_transient_failure_retried_then_rolled_back(self, pool, api, notifier, sleep):
        """Write policy: 2 retries (3 tries) with 500ms exponential backoff."""
        api.fail_next(ServerError("unavailable", status=503), times=10, operation="insert")

        with pytest.raises(ServerError):
            await pool.create({"title": "X"})

        assert api.calls[("insert", POOL)] == 3
        assert sleep.delays == [0.5, 1.0]
        assert pool.snapshot == ()
        assert len(notifier.errors) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, pool, api, notifier):
        api.fail_next(NetworkError("offline"), times=1, operation="insert")

        saved = await pool.create({"title": "X"})

        assert [t.id for t in pool.snapshot] == [saved.id]
        assert notifier.errors == []

    @pytest.mark.asyncio
    async def test_invalid_draft_changes_nothing(self, pool, api, notifier):
        with pytest.raises(ValidationError):
            await pool.create({"notes": "no title"})

        assert pool.snapshot == ()
        assert api.calls[("insert", POOL)] == 0
        assert len(notifier.errors) == 1

    @pytest.mark.asyncio
    async def test_confirmation_before_response_no_duplicate(self, feed, notifier, sleep):
        """The change stream delivering the insert first still yields one entity."""
        api = SlowConfirmApi(feed)
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()

        task = asyncio.create_task(engine.create({"title": "X"}))
        await asyncio.sleep(0.01)
        # stream merged the durable row alongside the temporary one
        assert len(engine.snapshot) == 2

        saved = await task

        assert [t.id for t in engine.snapshot] == [saved.id]
        await engine.close()

    @pytest.mark.asyncio
    async def test_own_confirmation_ignored(self, pool, api):
        """The stream's insert for an already-reconciled entity changes nothing."""
        saved = await pool.create({"title": "X"})
        await asyncio.sleep(0.01)

        assert [t.id for t in pool.snapshot] == [saved.id]

    @pytest.mark.asyncio
    async def test_imported_event_keeps_source_id(self, api, feed, notifier, sleep):
        """An imported calendar block is stored with the source event's id."""
        engine = SyncEngine(ScheduleItemMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()

        saved = await engine.create(
            {
                "id": "gcal-evt-42",
                "title": "Standup",
                "date": "2024-05-02",
                "start_time": "10:00",
                "end_time": "10:15",
                "external_event": True,
            }
        )

        assert saved.external_id == "gcal-evt-42"
        assert saved.id != "gcal-evt-42"
        assert api.get("time_blocks", saved.id)["external_id"] == "gcal-evt-42"
        await engine.close()


class TestUpdate:
    """Tests for optimistic update."""

    @pytest.fixture
    async def pool(self, api, feed, notifier, sleep):
        seed_pool(api, ("a", 1), ("b", 2))
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()
        yield engine
        await engine.close()

    @pytest.mark.asyncio
    async def test_rollback_exactness(self, pool, api, notifier):
        """A failed update restores the pre-patch entity and surfaces the error."""
        before = pool.snapshot
        assert pool.get("a").title == "A"
        api.fail_next(ValidationError("rejected"), operation="update")

        with pytest.raises(ValidationError):
            await pool.update("a", {"title": "B"})

        assert pool.get("a").title == "A"
        assert pool.snapshot == before
        assert len(notifier.errors) == 1

    @pytest.mark.asyncio
    async def test_optimistic_then_canonical(self, pool, api):
        api.block()
        task = asyncio.create_task(pool.update("a", {"title": "B"}))
        assert await api.wait_for_in_flight(1)

        assert pool.get("a").title == "B"
        assert pool.get("a").updated_at == api.get(POOL, "a")["updated_at"]

        api.release()
        saved = await task

        assert saved.title == "B"
        assert pool.get("a") == saved
        assert saved.updated_at == api.get(POOL, "a")["updated_at"]

    @pytest.mark.asyncio
    async def test_missing_target_is_noop(self, pool, api, notifier):
        before = pool.snapshot

        result = await pool.update("missing", {"title": "B"})

        assert result is None
        assert pool.snapshot == before
        assert api.calls[("update", POOL)] == 0
        assert notifier.notifications == []

    @pytest.mark.asyncio
    async def test_unknown_field(self, pool, api):
        before = pool.snapshot

        with pytest.raises(UnknownFieldError):
            await pool.update("a", {"titel": "B"})

        assert pool.snapshot == before
        assert api.calls[("update", POOL)] == 0

    @pytest.mark.asyncio
    async def test_rollback_restores_only_target(self, pool, api):
        """Rollback restores one entity, keeping concurrent changes to others."""
        api.block()
        api.fail_next(ValidationError("rejected"), operation="update")
        task = asyncio.create_task(pool.update("a", {"title": "B"}))
        assert await api.wait_for_in_flight(1)

        pool.subscriber.merge(
            RawChange(
                "UPDATE",
                POOL,
                new={"id": "b", "user_id": OWNER, "title": "remote", "position": 2},
            )
        )
        api.release()

        with pytest.raises(ValidationError):
            await task

        assert pool.get("a").title == "A"
        assert pool.get("b").title == "remote"


class GatedUpdateApi(InMemoryPersistence):
    """Store where each update waits for its own gate in ``gates``."""

    def __init__(self, feed):
        super().__init__(feed)
        self.gates = []

    async def update(self, table, record_id, owner_id, patch):
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return await super().update(table, record_id, owner_id, patch)


class TestConcurrentUpdates:
    """Overlapping updates on one id: the call that settles last decides."""

    @pytest.fixture
    def api(self, feed):
        return GatedUpdateApi(feed)

    @pytest.fixture
    async def pool(self, api, feed, notifier, sleep):
        seed_pool(api, ("a", 1))
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()
        yield engine
        await engine.close()

    async def issue_both(self, pool, api):
        first = asyncio.create_task(pool.update("a", {"title": "B"}))
        second = asyncio.create_task(pool.update("a", {"title": "C"}))
        while len(api.gates) < 2:
            await asyncio.sleep(0)
        assert pool.get("a").title == "C"
        return first, second

    @pytest.mark.asyncio
    async def test_failure_settling_last_restores_its_capture(self, pool, api, notifier):
        """The later call captured the earlier optimistic value and restores it."""
        first, second = await self.issue_both(pool, api)

        api.gates[0].set()
        saved = await first
        assert saved.title == "B"
        assert pool.get("a").title == "B"

        api.fail_next(ValidationError("rejected"), operation="update")
        api.gates[1].set()
        with pytest.raises(ValidationError):
            await second

        assert pool.get("a").title == "B"
        assert api.get(POOL, "a")["title"] == "B"
        assert len(notifier.errors) == 1

    @pytest.mark.asyncio
    async def test_success_settling_last_wins(self, pool, api, notifier):
        """An earlier failure rolls back, then the later success reconciles."""
        first, second = await self.issue_both(pool, api)

        api.fail_next(ValidationError("rejected"), operation="update")
        api.gates[0].set()
        with pytest.raises(ValidationError):
            await first
        assert pool.get("a").title == "A"

        api.gates[1].set()
        saved = await second

        assert saved.title == "C"
        assert pool.get("a").title == "C"
        assert api.get(POOL, "a")["title"] == "C"
        assert len(notifier.errors) == 1


class TestDelete:
    """Tests for optimistic delete."""

    @pytest.fixture
    async def pool(self, api, feed, notifier, sleep):
        seed_pool(api, ("a", 1), ("b", 2), ("c", 3))
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()
        yield engine
        await engine.close()

    @pytest.mark.asyncio
    async def test_rollback_exactness(self, pool, api, notifier):
        """[A, B, C] with a failing delete of B is restored to exactly [A, B, C]."""
        before = pool.snapshot
        api.fail_next(UnauthorizedError("expired session"), operation="delete")

        with pytest.raises(UnauthorizedError):
            await pool.delete("b")

        assert [t.id for t in pool.snapshot] == ["a", "b", "c"]
        assert pool.snapshot == before
        assert len(notifier.errors) == 1

    @pytest.mark.asyncio
    async def test_removed_optimistically(self, pool, api):
        api.block()
        task = asyncio.create_task(pool.delete("b"))
        assert await api.wait_for_in_flight(1)

        assert [t.id for t in pool.snapshot] == ["a", "c"]

        api.release()
        assert await task is True
        assert api.get(POOL, "b") is None
        assert [t.id for t in pool.snapshot] == ["a", "c"]

    @pytest.mark.asyncio
    async def test_missing_target_is_noop(self, pool, api, notifier):
        before = pool.snapshot

        assert await pool.delete("missing") is False

        assert pool.snapshot == before
        assert api.calls[("delete", POOL)] == 0
        assert notifier.notifications == []

    @pytest.mark.asyncio
    async def test_not_found_on_server_rolls_back(self, pool, api):
        api.fail_next(NotFoundError("gone", POOL, "c"), operation="delete")

        with pytest.raises(NotFoundError):
            await pool.delete("c")

        assert [t.id for t in pool.snapshot] == ["a", "b", "c"]


class TestOrdering:
    """Local state stays sorted after every operation."""

    @pytest.mark.asyncio
    async def test_schedule_sorted_by_date_and_time(self, api, feed, notifier, sleep):
        engine = SyncEngine(ScheduleItemMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()

        def block(title, date, start):
            return {"title": title, "date": date, "start_time": start, "end_time": "23:59"}

        lunch = await engine.create(block("lunch", "2024-05-02", "12:00"))
        assert_sorted(engine)
        await engine.create(block("gym", "2024-05-01", "18:00"))
        assert_sorted(engine)
        breakfast = await engine.create(block("breakfast", "2024-05-02", "07:30"))
        assert_sorted(engine)

        assert [i.title for i in engine.snapshot] == ["gym", "breakfast", "lunch"]

        await engine.update(lunch.id, {"start_time": "06:00"})
        assert_sorted(engine)
        assert [i.title for i in engine.snapshot] == ["gym", "lunch", "breakfast"]

        await engine.delete(breakfast.id)
        assert_sorted(engine)
        await engine.close()

    @pytest.mark.asyncio
    async def test_pool_sorted_after_mixed_operations(self, api, feed, notifier, sleep):
        seed_pool(api, ("a", 1), ("b", 2))
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        snapshots = []
        engine.subscribe(snapshots.append)
        await engine.start()

        created = await engine.create({"title": "c"})
        await engine.update("a", {"position": 5})
        await engine.reorder([created.id, "b"])
        await engine.delete("b")
        await asyncio.sleep(0.01)

        assert_sorted(engine)
        for snapshot in snapshots:
            keys = [engine.mapping.sort_key(t) for t in snapshot]
            assert keys == sorted(keys)
        await engine.close()


class TestReorder:
    """Tests for reorder of positional entities."""

    @pytest.fixture
    async def pool(self, api, feed, notifier, sleep):
        seed_pool(api, ("a", 1), ("b", 2), ("c", 3))
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()
        yield engine
        await engine.close()

    @pytest.mark.asyncio
    async def test_assigns_one_based_positions(self, pool, api):
        result = await pool.reorder(["c", "a", "b"])

        assert [(t.id, t.position) for t in pool.snapshot] == [("c", 1), ("a", 2), ("b", 3)]
        assert result.ok
        assert set(result.updated) == {"a", "b", "c"}
        assert api.get(POOL, "c")["position"] == 1

    @pytest.mark.asyncio
    async def test_only_changed_positions_persisted(self, pool, api):
        """Unknown ids are skipped; unnamed entities follow the named ones."""
        result = await pool.reorder(["b", "unknown"])

        assert [(t.id, t.position) for t in pool.snapshot] == [("b", 1), ("a", 2), ("c", 3)]
        assert set(result.updated) == {"a", "b"}
        assert api.calls[("update", POOL)] == 2

    @pytest.mark.asyncio
    async def test_same_order_persists_nothing(self, pool, api):
        result = await pool.reorder(["a", "b", "c"])

        assert result.updated == ()
        assert api.calls[("update", POOL)] == 0

    @pytest.mark.asyncio
    async def test_partial_failure_reported_not_rolled_back(self, pool, api, notifier):
        api.fail_next(ServerError("boom"), times=1, operation="update")

        result = await pool.reorder(["b", "a"])

        assert not result.ok
        assert len(result.failed) == 1
        assert len(result.updated) == 1
        assert [t.id for t in pool.snapshot] == ["b", "a", "c"]
        assert len(notifier.errors) == 1

    @pytest.mark.asyncio
    async def test_reorder_policy_does_not_retry(self, pool, api, sleep):
        api.fail_next(NetworkError("offline"), times=2, operation="update")

        result = await pool.reorder(["b", "a"])

        assert len(result.failed) == 2
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_schedule_cannot_reorder(self, api, feed, notifier, sleep):
        engine = SyncEngine(ScheduleItemMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)

        with pytest.raises(UnsupportedOperationError):
            await engine.reorder(["x"])
        await engine.close()


class TestInitialLoad:
    """Tests for start() and reload()."""

    @pytest.fixture
    def engine(self, api, feed, notifier, sleep):
        return SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)

    @pytest.mark.asyncio
    async def test_loads_sorted_excluding_completed(self, engine, api):
        seed_pool(api, ("b", 2), ("a", 1))
        api.seed(POOL, OWNER, {"id": "done", "title": "done", "position": 0, "completed": True})
        api.seed(POOL, "user-2", {"id": "other", "title": "other", "position": 0, "completed": False})

        await engine.start()

        assert [t.id for t in engine.snapshot] == ["a", "b"]
        assert engine.loading is False
        await engine.close()

    @pytest.mark.asyncio
    async def test_include_completed(self, engine, api):
        api.seed(POOL, OWNER, {"id": "done", "title": "done", "position": 1, "completed": True})

        await engine.start(include_completed=True)

        assert [t.id for t in engine.snapshot] == ["done"]
        await engine.close()

    @pytest.mark.asyncio
    async def test_subscribes_before_loading(self, engine, api, feed):
        api.block()
        task = asyncio.create_task(engine.start())
        assert await api.wait_for_in_flight(1)

        assert engine.loading is True
        assert feed.subscriber_count(POOL, OWNER) == 1

        api.release()
        await task
        assert engine.loading is False
        await engine.close()

    @pytest.mark.asyncio
    async def test_load_policy_is_patient(self, engine, api, sleep):
        """Initial load retries with the load policy (1000ms base)."""
        seed_pool(api, ("a", 1))
        api.fail_next(ServerError("warming up"), times=2, operation="list")

        await engine.start()

        assert sleep.delays == [1.0, 2.0]
        assert [t.id for t in engine.snapshot] == ["a"]
        await engine.close()

    @pytest.mark.asyncio
    async def test_load_failure_notifies(self, engine, api, notifier):
        api.fail_next(UnauthorizedError("no session"), operation="list")

        with pytest.raises(UnauthorizedError):
            await engine.start()

        assert engine.loading is False
        assert len(notifier.errors) == 1
        await engine.close()

    @pytest.mark.asyncio
    async def test_reload_keeps_pending_temporaries(self, engine, api):
        """Reload replaces server-known entities and keeps unconfirmed creates."""
        seed_pool(api, ("a", 1))
        await engine.start()
        pending = PoolTask(id=make_temporary_id(), owner_id=OWNER, title="pending", position=2)
        engine.store.apply(lambda current: (*current, pending))
        seed_pool(api, ("b", 3))

        await engine.reload()

        assert [t.id for t in engine.snapshot] == ["a", pending.id, "b"]
        await engine.close()

    @pytest.mark.asyncio
    async def test_insert_merged_during_load_survives(self, engine, api, feed):
        """A change pushed while the list is in flight is not overwritten."""
        seed_pool(api, ("a", 1))
        api.block()
        task = asyncio.create_task(engine.start())
        assert await api.wait_for_in_flight(1)

        feed.publish(
            RawChange("INSERT", POOL, new={"id": "pushed", "user_id": OWNER, "title": "P", "position": 2})
        )
        await asyncio.sleep(0.01)
        assert engine.get("pushed") is not None

        api.release()
        await task

        assert [t.id for t in engine.snapshot] == ["a", "pushed"]
        await engine.close()

    @pytest.mark.asyncio
    async def test_delete_merged_during_load_survives(self, engine, api, feed):
        """A row deleted while the list is in flight is not restored by it."""
        seed_pool(api, ("a", 1), ("b", 2))
        await engine.start()

        api.block()
        task = asyncio.create_task(engine.reload())
        assert await api.wait_for_in_flight(1)

        feed.publish(RawChange("DELETE", POOL, old={"id": "b"}), owner_id=OWNER)
        await asyncio.sleep(0.01)

        api.release()
        await task

        assert [t.id for t in engine.snapshot] == ["a"]
        await engine.close()


class TestTeardown:
    """Tests for close()."""

    @pytest.fixture
    async def pool(self, api, feed, notifier, sleep):
        seed_pool(api, ("a", 1))
        engine = SyncEngine(PoolTaskMapping(), OWNER, api, feed, notifier=notifier, sleep=sleep)
        await engine.start()
        yield engine
        await engine.close()

    @pytest.mark.asyncio
    async def test_success_after_close_discarded(self, pool, api, notifier):
        api.block()
        task = asyncio.create_task(pool.create({"title": "late"}))
        assert await api.wait_for_in_flight(1)
        before = pool.snapshot
        notifier.clear()

        await pool.close()
        api.release()
        saved = await task

        assert pool.snapshot == before
        assert pool.get(saved.id) is None
        assert notifier.notifications == []

    @pytest.mark.asyncio
    async def test_failure_after_close_discarded(self, pool, api, notifier):
        """The caller still sees the error; local state and notifications do not."""
        api.block()
        api.fail_next(ServerError("boom"), times=10, operation="update")
        task = asyncio.create_task(pool.update("a", {"title": "late"}))
        assert await api.wait_for_in_flight(1)
        before = pool.snapshot
        notifier.clear()

        await pool.close()
        api.release()
        with pytest.raises(ServerError):
            await task

        assert pool.snapshot == before
        assert notifier.notifications == []

    @pytest.mark.asyncio
    async def test_operations_after_close(self, pool):
        await pool.close()
        await pool.close()

        assert pool.closed
        with pytest.raises(EngineClosedError):
            await pool.create({"title": "x"})
        with pytest.raises(EngineClosedError):
            await pool.update("a", {"title": "x"})
        with pytest.raises(EngineClosedError):
            await pool.delete("a")
        with pytest.raises(EngineClosedError):
            await pool.start()

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, pool, api, feed):
        await pool.close()

        assert feed.subscriber_count(POOL, OWNER) == 0
        api.seed(POOL, OWNER, {"id": "z", "title": "z", "position": 9, "completed": False})
        feed.publish(RawChange("INSERT", POOL, new=api.get(POOL, "z")))
        await asyncio.sleep(0.01)

        assert pool.get("z") is None

    @pytest.mark.asyncio
    async def test_subscription_drop_not_fatal(self, pool, feed):
        feed.disconnect(POOL, OWNER)
        await asyncio.sleep(0.01)

        assert not pool.subscriber.is_running
        created = await pool.create({"title": "still works"})
        assert pool.get(created.id) is not None
