"""
Tests for the activity log: required fields, newest-first reads and limits.
"""

import pytest

from stocksync.services import activity_service
from stocksync.services.activity_service import Actor
from stocksync.validation import ValidationError


def _append(activity, actor, entity_id="i1", **kwargs):
    return activity.append(
        actor=actor,
        action=kwargs.pop("action", activity_service.CREATE),
        entity_id=entity_id,
        entity_name=kwargs.pop("entity_name", "Hammer"),
        **kwargs,
    )


class TestAppend:
    def test_append_assigns_uuid_and_timestamp(self, activity, alice):
        entry = _append(activity, alice, details="Added new item: Hammer")

        assert len(entry.id) == 36
        assert entry.timestamp > 0
        assert entry.user_id == "user-alice"
        assert entry.username == "alice"
        assert entry.entity_type == "item"
        assert entry.to_dict()["details"] == "Added new item: Hammer"

    def test_missing_required_fields_are_rejected(self, activity, alice):
        with pytest.raises(ValidationError):
            _append(activity, alice, entity_name="")
        with pytest.raises(ValidationError):
            _append(activity, Actor(user_id="", display_name="nobody"))
        with pytest.raises(ValidationError):
            _append(activity, alice, action=None)

        assert activity.recent(10) == []


class TestRecent:
    def test_newest_first(self, activity, alice):
        first = _append(activity, alice, entity_id="i1")
        second = _append(activity, alice, entity_id="i2")
        third = _append(activity, alice, entity_id="i3")

        assert [e.id for e in activity.recent(10)] == [third.id, second.id, first.id]

    def test_same_millisecond_entries_keep_insertion_order(self, activity, alice):
        entries = [
            _append(activity, alice, entity_id=f"i{n}", entry_id=entry_id, timestamp=5000)
            for n, entry_id in enumerate(["ffff", "0000", "8888", "aaaa"])
        ]

        assert [e.seq for e in entries] == [1, 2, 3, 4]
        assert [e.id for e in activity.recent(10)] == ["aaaa", "8888", "0000", "ffff"]

    def test_limit_zero_and_clamping(self, store, alice):
        service = activity_service.ActivityLogService(store, max_limit=2)
        for n in range(3):
            _append(service, alice, entity_id=f"i{n}", timestamp=1000 + n)

        assert service.recent(0) == []
        assert len(service.recent(1)) == 1
        assert len(service.recent(50)) == 2

    def test_for_entity_filters_by_type_and_id(self, activity, alice):
        _append(activity, alice, entity_id="x1")
        _append(activity, alice, entity_id="x1", entity_type="category", entity_name="Tools")
        _append(activity, alice, entity_id="x2")

        entries = activity.for_entity("x1")
        assert len(entries) == 1
        assert entries[0].entity_type == "item"

    def test_observe_recent_and_wipe(self, activity, alice):
        sizes = []
        activity.observe_recent(5, lambda entries: sizes.append(len(entries)))

        _append(activity, alice)
        assert activity.wipe_all() == 1

        assert sizes == [0, 1, 0]
