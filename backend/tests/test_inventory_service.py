"""
Tests for inventory gestures: each one writes the cache, the outbox and the
activity log together, or none of them.
"""

import json

import pytest

from stocksync.errors import NotFound
from stocksync.models import ActionType
from stocksync.services import activity_service
from stocksync.validation import ConflictError, ValidationError

from conftest import item_row


def _new_item(inventory, alice, **data):
    payload = {"id": "i1", "name": "Hammer", "quantity": 10, "buying_price": 4, "selling_price": 6}
    payload.update(data)
    return inventory.add_item(actor=alice, data=payload)


class TestAddItem:
    def test_add_writes_cache_outbox_and_activity(self, inventory, cache, outbox, activity, alice):
        created = _new_item(inventory, alice)

        assert created["created_by"] == "user-alice"
        assert cache.items.get_by_id("i1").quantity == 10

        (action,) = outbox.list_pending()
        assert action.action_type is ActionType.ADD_ITEM
        assert action.entity_id == "i1"
        assert json.loads(action.payload)["name"] == "Hammer"

        (entry,) = activity.recent(10)
        assert entry.action == activity_service.CREATE
        assert entry.username == "alice"
        assert entry.details == "Added new item: Hammer"

    def test_generates_id_when_absent(self, inventory, alice):
        created = inventory.add_item(actor=alice, data={"name": "Saw"})
        assert len(created["id"]) == 36

    def test_duplicate_id_is_a_conflict_and_writes_nothing(self, inventory, outbox, activity, alice):
        _new_item(inventory, alice)

        with pytest.raises(ConflictError):
            _new_item(inventory, alice, name="Other")

        assert outbox.count_pending() == 1
        assert len(activity.recent(10)) == 1

    def test_invalid_row_is_a_validation_error(self, inventory, outbox, alice):
        with pytest.raises(ValidationError):
            inventory.add_item(actor=alice, data={"name": "Saw", "buying_price": -1})
        assert outbox.count_pending() == 0


class TestUpdateItem:
    def test_update_replaces_fields_and_queues_full_row(self, inventory, cache, outbox, alice):
        _new_item(inventory, alice)

        updated = inventory.update_item(actor=alice, item_id="i1", changes={"name": "Claw Hammer", "details": "16oz"})

        assert updated["name"] == "Claw Hammer"
        assert cache.items.get_by_id("i1").details == "16oz"
        last = outbox.list_pending()[-1]
        assert last.action_type is ActionType.UPDATE_ITEM
        assert json.loads(last.payload)["quantity"] == 10

    def test_tombstone_fields_are_not_editable(self, inventory, alice):
        _new_item(inventory, alice)
        with pytest.raises(ValidationError):
            inventory.update_item(actor=alice, item_id="i1", changes={"is_deleted": True})

    def test_missing_item_raises_not_found(self, inventory, outbox, alice):
        with pytest.raises(NotFound):
            inventory.update_item(actor=alice, item_id="nope", changes={"name": "X"})
        assert outbox.count_pending() == 0


class TestQuantity:
    def test_set_quantity_queues_only_the_count(self, inventory, cache, outbox, activity, alice):
        _new_item(inventory, alice)

        result = inventory.set_quantity(actor=alice, item_id="i1", quantity=4)

        assert result == {"id": "i1", "quantity": 4, "previous_quantity": 10}
        assert cache.items.get_by_id("i1").quantity == 4
        last = outbox.list_pending()[-1]
        assert last.action_type is ActionType.UPDATE_QUANTITY
        assert json.loads(last.payload) == {"quantity": 4}
        assert activity.recent(1)[0].details == "Removed 6 units (quantity changed from 10 to 4)"

    def test_change_quantity_applies_delta_and_clamps_at_zero(self, inventory, activity, alice):
        _new_item(inventory, alice)

        assert inventory.change_quantity(actor=alice, item_id="i1", delta=5)["quantity"] == 15
        assert activity.recent(1)[0].details == "Added 5 units (quantity changed from 10 to 15)"
        assert inventory.change_quantity(actor=alice, item_id="i1", delta=-40)["quantity"] == 0

    def test_missing_item_writes_nothing(self, inventory, outbox, activity, alice):
        with pytest.raises(NotFound):
            inventory.change_quantity(actor=alice, item_id="nope", delta=1)
        assert outbox.count_pending() == 0
        assert activity.recent(10) == []


class TestDeleteAndRestore:
    def test_delete_tombstones_and_queues_delete(self, inventory, cache, outbox, activity, alice):
        _new_item(inventory, alice)

        deleted = inventory.delete_item(actor=alice, item_id="i1")

        assert deleted["is_deleted"] is True
        assert deleted["deleted_by"] == "user-alice"
        assert cache.items.list_active() == []
        last = outbox.list_pending()[-1]
        assert last.action_type is ActionType.DELETE_ITEM
        assert json.loads(last.payload)["is_deleted"] is True
        assert activity.recent(1)[0].action == activity_service.DELETE

    def test_second_delete_is_a_no_op(self, inventory, outbox, activity, alice):
        _new_item(inventory, alice)
        first = inventory.delete_item(actor=alice, item_id="i1")
        pending_after_first = outbox.count_pending()

        again = inventory.delete_item(actor=alice, item_id="i1")

        assert again["deleted_at"] == first["deleted_at"]
        assert outbox.count_pending() == pending_after_first
        assert len(activity.recent(10)) == 2

    def test_restore_clears_tombstone(self, inventory, cache, outbox, activity, alice):
        _new_item(inventory, alice)
        inventory.delete_item(actor=alice, item_id="i1")

        restored = inventory.restore_item(actor=alice, item_id="i1")

        assert restored["is_deleted"] is False
        assert [i.id for i in cache.items.list_active()] == ["i1"]
        assert outbox.list_pending()[-1].action_type is ActionType.UPDATE_ITEM
        assert activity.recent(1)[0].action == activity_service.RESTORE

    def test_restore_of_live_item_conflicts(self, inventory, alice):
        _new_item(inventory, alice)
        with pytest.raises(ConflictError):
            inventory.restore_item(actor=alice, item_id="i1")


class TestCategoriesAndActors:
    def test_add_category(self, inventory, cache, outbox, activity, alice):
        created = inventory.add_category(actor=alice, name="  Tools ")

        assert created["name"] == "Tools"
        assert cache.categories.get_by_id(created["id"]) is not None
        assert outbox.list_pending()[0].action_type is ActionType.ADD_CATEGORY
        entry = activity.recent(1)[0]
        assert entry.entity_type == "category"

    def test_blank_category_name_rejected(self, inventory, alice):
        with pytest.raises(ValidationError):
            inventory.add_category(actor=alice, name="   ")
        with pytest.raises(ValidationError):
            inventory.add_category(actor=alice, name=5)

    def test_actor_display_name_falls_back_to_profile_then_unknown(self, inventory, cache):
        cache.profiles.upsert_batch([
            {"id": "u1", "email": "bob@example.com", "username": "bob"},
            {"id": "u2", "email": "carol@example.com"},
        ])

        assert inventory.actor_for("u1").display_name == "bob"
        assert inventory.actor_for("u2").display_name == "carol@example.com"
        assert inventory.actor_for("u3").display_name == "Unknown"
        assert inventory.actor_for("u1", "Robert").display_name == "Robert"


class TestResetLocalState:
    def test_reset_wipes_everything(self, inventory, cache, outbox, activity, reconciler, remote, alice):
        remote.snapshots["items"] = [item_row("r1", "Remote")]
        reconciler.run_cycle()
        _new_item(inventory, alice)

        counts = inventory.reset_local_state(reconciler=reconciler)

        assert counts["items"] == 2
        assert counts["pending_actions"] == 1
        assert counts["activity_logs"] == 1
        assert counts["sync_cursors"] == 3
        assert cache.items.count() == 0
        assert outbox.count_pending() == 0
        assert activity.recent(10) == []


class TestEndToEnd:
    def test_offline_edits_reach_the_remote_in_order(self, inventory, outbox, activity, remote, reconciler, alice):
        _new_item(inventory, alice)
        inventory.change_quantity(actor=alice, item_id="i1", delta=-3)
        inventory.delete_item(actor=alice, item_id="i1")

        result = reconciler.run_cycle()

        assert result.success is True
        assert [a.action_type for a in remote.delivered] == [
            ActionType.ADD_ITEM, ActionType.UPDATE_QUANTITY, ActionType.DELETE_ITEM,
        ]
        assert outbox.count_pending() == 0
        assert result.pruned == 3

        # delivery and pruning leave the audit trail alone
        assert [e.action for e in activity.recent(10)] == [
            activity_service.DELETE, activity_service.UPDATE_QUANTITY, activity_service.CREATE,
        ]
