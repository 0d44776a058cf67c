"""Tests for crew members, project membership, activity and the weekly schedule."""

import pytest

from mission_control.errors import NotFound, ValidationError
from mission_control.members import member_activity


class TestMemberStore:

    def test_create(self, member_store):
        member = member_store.create({"name": "Ana", "role": "Navigator", "llmModel": "local-7b"})
        loaded = member_store.require(member.id)
        assert loaded.role == "Navigator"
        assert loaded.llm_model == "local-7b"
        assert loaded.project_ids == []

    def test_name_required(self, member_store):
        with pytest.raises(ValidationError):
            member_store.create({"role": "nobody"})

    def test_update_merges(self, member_store):
        member = member_store.create({"name": "Ana", "role": "Navigator"})
        updated = member_store.update(member.id, {"description": "Charts the route"})
        assert updated.role == "Navigator"
        assert updated.description == "Charts the route"

    def test_delete(self, member_store):
        member = member_store.create({"name": "Ana"})
        member_store.delete(member.id)
        assert member_store.get(member.id) is None
        with pytest.raises(NotFound):
            member_store.delete(member.id)


class TestMembership:

    def test_add_and_remove(self, member_store):
        member = member_store.create({"name": "Ana"})
        member_store.add_to_project(member.id, "p1")
        member_store.add_to_project(member.id, "p1")
        assert member_store.require(member.id).project_ids == ["p1"]

        member_store.remove_from_project(member.id, "p1")
        assert member_store.require(member.id).project_ids == []

    def test_sync_project(self, member_store):
        ana = member_store.create({"name": "Ana"})
        joe = member_store.create({"name": "Joe"})

        member_store.sync_project("p1", [ana.id])
        assert member_store.require(ana.id).project_ids == ["p1"]
        assert member_store.require(joe.id).project_ids == []

        member_store.sync_project("p1", [joe.id])
        assert member_store.require(ana.id).project_ids == []
        assert member_store.require(joe.id).project_ids == ["p1"]


def test_member_activity(member_store, project_store, task_store, scheduled_store):
    ana = member_store.create({"name": "Ana"})
    project = project_store.create({"name": "Alpha"})
    task_store.create("alpha", project.id, {"title": "Chart course", "assignedMemberId": ana.id})
    task_store.create("alpha", project.id, {"title": "Someone else's"})
    scheduled_store.create({"title": "Weekly sync", "time": "09:00", "dayOfWeek": "monday",
                            "assignedMemberId": ana.id})

    activity = member_activity(ana.id, project_store, task_store, scheduled_store)

    assert [a["taskTitle"] for a in activity] == ["Chart course", "Weekly sync"]
    assert activity[0]["projectId"] == "alpha"
    assert activity[0]["source"] == "project"
    assert activity[1]["status"] == "recurring"
    assert activity[1]["projectName"] == "Monday at 09:00"
    assert activity[1]["source"] == "scheduled"


class TestScheduledStore:

    def test_create(self, scheduled_store):
        slot = scheduled_store.create({"title": "Backup", "time": "23:30", "dayOfWeek": "Sunday"})
        assert slot.day_of_week == "sunday"
        assert slot.color
        assert [s.id for s in scheduled_store.list_tasks()] == [slot.id]

    @pytest.mark.parametrize("time", ["9:00", "24:00", "12:60", "noon", None])
    def test_bad_time(self, scheduled_store, time):
        with pytest.raises(ValidationError):
            scheduled_store.create({"title": "X", "time": time, "dayOfWeek": "monday"})

    def test_bad_day(self, scheduled_store):
        with pytest.raises(ValidationError):
            scheduled_store.create({"title": "X", "time": "09:00", "dayOfWeek": "funday"})

    def test_update(self, scheduled_store):
        slot = scheduled_store.create({"title": "Backup", "time": "23:30", "dayOfWeek": "sunday"})
        updated = scheduled_store.update(slot.id, {"time": "01:15"})
        assert updated.time == "01:15"
        assert updated.title == "Backup"

    def test_delete_unknown(self, scheduled_store):
        with pytest.raises(NotFound):
            scheduled_store.delete("ghost")
