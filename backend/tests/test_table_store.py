"""
Tests for the durable table store: transaction scopes, error mapping,
local retry and live-query notification.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from stocksync.errors import Fatal, TransientIO
from stocksync.models import Category, Item
from stocksync.services.concurrency import run_with_retry


def _category(cid, name):
    return Category(id=cid, name=name)


class TestTransactionScopes:
    """Outermost scope commits; nested scopes join it."""

    def test_nested_scopes_commit_together(self, store):
        with store.transaction():
            store.merge_all([_category("c1", "Tools")])
            with store.transaction():
                store.merge_all([_category("c2", "Paint")])
            assert store.in_transaction

        assert not store.in_transaction
        assert store.count(Category) == 2

    def test_error_in_inner_scope_rolls_back_everything(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.merge_all([_category("c1", "Tools")])
                with store.transaction():
                    store.merge_all([_category("c2", "Paint")])
                    raise RuntimeError("boom")

        assert store.count(Category) == 0
        assert not store.in_transaction

    def test_atomic_joins_enclosing_transaction(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.atomic(lambda _s: store.merge_all([_category("c1", "Tools")]))
                raise RuntimeError("abort gesture")

        assert store.get(Category, "c1") is None

    def test_operational_error_maps_to_local_transient(self, store):
        with pytest.raises(TransientIO) as exc_info:
            with store.transaction():
                raise OperationalError("UPDATE items", {}, Exception("database is locked"))

        assert exc_info.value.source == "local"

    def test_other_database_errors_map_to_fatal(self, store):
        with pytest.raises(Fatal):
            with store.transaction():
                raise IntegrityError("INSERT INTO items", {}, Exception("constraint failed"))


class TestRunWithRetry:
    def test_retries_local_transient_then_succeeds(self):
        calls = []
        sleeps = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TransientIO("locked", source="local")
            return "ok"

        assert run_with_retry(flaky, attempts=3, backoff_base=0.01, sleep=sleeps.append) == "ok"
        assert len(calls) == 3
        assert len(sleeps) == 2
        assert sleeps[1] > sleeps[0]

    def test_gives_up_after_attempt_budget(self):
        def always_locked():
            raise TransientIO("locked", source="local")

        with pytest.raises(TransientIO):
            run_with_retry(always_locked, attempts=2, backoff_base=0.0, sleep=lambda _s: None)

    def test_remote_transient_is_not_retried(self):
        calls = []

        def unreachable():
            calls.append(1)
            raise TransientIO("down", source="remote")

        with pytest.raises(TransientIO):
            run_with_retry(unreachable, attempts=5, backoff_base=0.0, sleep=lambda _s: None)
        assert len(calls) == 1


class TestSubscriptions:
    """Live queries see a fresh snapshot after each committed change."""

    def test_initial_emission_and_refresh_after_commit(self, store):
        seen = []
        store.subscribe(Category, lambda: store.count(Category), seen.append)
        assert seen == [0]

        store.atomic(lambda _s: store.merge_all([_category("c1", "Tools")]))
        assert seen == [0, 1]

    def test_no_emission_until_outermost_commit(self, store):
        seen = []
        store.subscribe(Category, lambda: store.count(Category), seen.append, emit_initial=False)

        with store.transaction():
            store.merge_all([_category("c1", "Tools")])
            store.merge_all([_category("c2", "Paint")])
            assert seen == []

        assert seen == [2]

    def test_no_emission_on_rollback(self, store):
        seen = []
        store.subscribe(Category, lambda: store.count(Category), seen.append, emit_initial=False)

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.merge_all([_category("c1", "Tools")])
                raise RuntimeError("abort")

        assert seen == []

    def test_only_watchers_of_touched_tables_refresh(self, store):
        item_views = []
        category_views = []
        store.subscribe(Item, lambda: store.count(Item), item_views.append, emit_initial=False)
        store.subscribe(Category, lambda: store.count(Category), category_views.append, emit_initial=False)

        store.atomic(lambda _s: store.merge_all([_category("c1", "Tools")]))

        assert item_views == []
        assert category_views == [1]

    def test_cancelled_subscription_stops_receiving(self, store):
        seen = []
        sub = store.subscribe(Category, lambda: store.count(Category), seen.append, emit_initial=False)
        sub.cancel()

        store.atomic(lambda _s: store.merge_all([_category("c1", "Tools")]))
        assert seen == []

    def test_failing_subscriber_does_not_block_others(self, store):
        seen = []

        def broken(_value):
            raise RuntimeError("listener bug")

        store.subscribe(Category, lambda: 1, broken, emit_initial=False)
        store.subscribe(Category, lambda: store.count(Category), seen.append, emit_initial=False)

        store.atomic(lambda _s: store.merge_all([_category("c1", "Tools")]))
        assert seen == [1]
        assert store.count(Category) == 1

    def test_wipe_of_empty_table_still_notifies(self, store):
        seen = []
        store.subscribe(Category, lambda: store.count(Category), seen.append, emit_initial=False)

        store.atomic(lambda _s: store.delete_where(Category))
        assert seen == [0]
