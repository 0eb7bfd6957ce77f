from datetime import date, datetime, timedelta, timezone

import pydantic
import pytest

from checklist.models import AlarmOffset, Priority, apply_invariants, is_overdue, priority_rank, wants_reminder
from checklist.schemas import TaskCreate, TaskOut, TaskUpdate

from .fakes import task_entity

NOW = datetime(2030, 6, 1, 12, 0)


class TestPriority:
    def test_ranks(self):
        assert [p.rank for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW)] == [3, 2, 1]

    @pytest.mark.parametrize("raw", [None, "", "urgent", 7])
    def test_unknown_reads_as_medium(self, raw):
        assert Priority.parse(raw) is Priority.MEDIUM

    def test_parse_is_case_insensitive(self):
        assert Priority.parse(" high ") is Priority.HIGH

    def test_priority_rank_of_entity(self):
        assert priority_rank(task_entity(priority="bogus")) == 2


class TestAlarmOffset:
    @pytest.mark.parametrize("raw", [15, 30, 60, 120, 1440, "60"])
    def test_members_kept(self, raw):
        assert AlarmOffset.normalize(raw) == int(raw)

    @pytest.mark.parametrize("raw", [45, 0, -15, None, "soon"])
    def test_non_members_become_thirty(self, raw):
        assert AlarmOffset.normalize(raw) is AlarmOffset.THIRTY_MINUTES


class TestInvariants:
    def test_alarm_without_due_date_is_cleared(self):
        entity = apply_invariants(task_entity(has_time=True, has_alarm=True))
        assert entity["has_time"] is False
        assert entity["has_alarm"] is False

    def test_alarm_without_time_is_cleared_and_date_truncated(self):
        entity = apply_invariants(task_entity(due_date=datetime(2030, 6, 2, 15, 30), has_alarm=True))
        assert entity["has_alarm"] is False
        assert entity["due_date"] == datetime(2030, 6, 2)

    def test_completed_task_loses_alarm(self):
        entity = apply_invariants(
            task_entity(completed=True, due_date=NOW, has_time=True, has_alarm=True)
        )
        assert entity["has_alarm"] is False
        assert entity["has_time"] is True

    def test_wants_reminder(self):
        assert wants_reminder(task_entity(due_date=NOW, has_time=True, has_alarm=True))
        assert not wants_reminder(task_entity(due_date=NOW, has_time=True))

    def test_is_overdue(self):
        assert is_overdue(task_entity(due_date=NOW - timedelta(minutes=1)), NOW)
        assert not is_overdue(task_entity(), NOW)


class TestTaskCreate:
    def test_defaults(self):
        payload = TaskCreate(title="  Buy milk  ")
        assert payload.title == "Buy milk"
        assert payload.priority is Priority.MEDIUM
        assert payload.alarm_offset is AlarmOffset.THIRTY_MINUTES
        assert payload.completed is False
        assert payload.due_date is None

    @pytest.mark.parametrize("title", ["", "   "])
    def test_empty_title_rejected(self, title):
        with pytest.raises(pydantic.ValidationError):
            TaskCreate(title=title)

    def test_offset_45_normalized(self):
        assert TaskCreate(title="x", alarm_offset=45).alarm_offset == 30

    def test_date_only_promoted_to_midnight(self):
        payload = TaskCreate(title="x", due_date=date(2030, 6, 2))
        assert payload.due_date == datetime(2030, 6, 2)
        assert payload.has_time is False

    def test_invalid_due_date_string_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            TaskCreate(title="x", due_date="not-a-date")

    def test_aware_due_date_becomes_naive_local(self):
        aware = datetime(2030, 6, 2, 9, 0, tzinfo=timezone.utc)
        payload = TaskCreate(title="x", due_date=aware, has_time=True)
        assert payload.due_date.tzinfo is None
        assert payload.due_date == aware.astimezone().replace(tzinfo=None)

    def test_alarm_requires_time(self):
        payload = TaskCreate(title="x", due_date="2030-06-02T09:00:00", has_alarm=True)
        assert payload.has_alarm is False

    def test_completed_create_drops_alarm(self):
        payload = TaskCreate(
            title="x", due_date="2030-06-02T09:00:00", has_time=True, has_alarm=True, completed=True
        )
        assert payload.has_alarm is False


class TestTaskUpdate:
    def test_only_set_fields_are_tracked(self):
        update = TaskUpdate(title="New")
        assert update.model_fields_set == {"title"}

    def test_explicit_null_due_date_is_tracked(self):
        update = TaskUpdate.model_validate({"due_date": None})
        assert "due_date" in update.model_fields_set

    def test_replacing_sets_every_field(self):
        update = TaskUpdate.replacing(TaskCreate(title="x"))
        assert {"title", "completed", "priority", "due_date", "has_time", "has_alarm", "alarm_offset"} <= (
            update.model_fields_set
        )


class TestTaskOut:
    def test_derived_fields(self):
        entity = task_entity(priority=Priority.HIGH, due_date=NOW - timedelta(hours=1))
        out = TaskOut.from_entity(entity, NOW)
        assert out.is_overdue is True
        assert out.priority_rank == 3
        assert out.alarm_offset == 30
