"""
Unit tests for domain models and services.
No database, no framework: pure Python.
"""
import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from questlog.domain.models.task import (
    Task, CompletedTask, TaskInput, SingleTask, TaskBatch, XPBreakdown,
    parse_timestamp, format_timestamp
)
from questlog.domain.models.user import UserProgress, coerce_number, level_for, xp_for_level
from questlog.domain.services.task_manager import TaskManager
from questlog.domain.services.task_store import TaskStore
from questlog.domain.services.xp_calculator import XPCalculator

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


# ──── Task domain tests ───────────────────────────────────────────────────────
class TestTaskDomain:

    def make_task(self, **overrides):
        values = dict(id="123", title="Slay the dragon", experience=100)
        values.update(overrides)
        return Task(**values)

    def test_negative_experience_rejected(self):
        with pytest.raises(ValueError):
            self.make_task(experience=-1)

    def test_deadline_string_is_parsed(self):
        t = self.make_task(deadline="2025-01-10T09:00:00.000Z")
        assert t.deadline == datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_is_utc(self):
        assert parse_timestamp("2025-01-10T09:00:00").tzinfo == timezone.utc

    def test_is_overdue(self):
        t = self.make_task(deadline=NOW - timedelta(hours=1))
        assert t.is_overdue(NOW)
        assert not self.make_task().is_overdue(NOW)

    def test_merge_keeps_id_and_created_at(self):
        t = self.make_task(created_at=NOW)
        merged = t.merge({"id": "999", "created_at": NOW + timedelta(days=1), "title": "Updated"})
        assert merged.id == "123"
        assert merged.created_at == NOW
        assert merged.title == "Updated"
        assert merged.experience == 100

    def test_merge_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            self.make_task().merge({"colour": "red"})

    def test_complete_carries_fields_and_breakdown(self):
        t = self.make_task(label="chores")
        done = t.complete(XPBreakdown(early_bonus=10), completed_at=NOW)
        assert isinstance(done, CompletedTask)
        assert done.id == t.id and done.label == "chores"
        assert done.completed_at == NOW
        assert done.early_bonus == 10 and done.overdue_penalty == 0

    def test_completed_sign_invariants(self):
        with pytest.raises(ValueError):
            CompletedTask(id="1", early_bonus=-1)
        with pytest.raises(ValueError):
            CompletedTask(id="1", overdue_penalty=5)

    def test_contributed_xp(self):
        done = CompletedTask(id="1", experience=100, early_bonus=10, overdue_penalty=-5)
        assert done.contributed_xp() == 105

    def test_document_uses_camel_case(self):
        doc = self.make_task(created_at=NOW).complete(XPBreakdown(), completed_at=NOW).to_document()
        assert doc["createdAt"] == "2025-01-06T12:00:00Z"
        assert doc["completedAt"] == "2025-01-06T12:00:00Z"
        assert doc["earlyBonus"] == 0 and doc["overduePenalty"] == 0
        assert doc["label"] is None

    def test_from_client_document(self):
        doc = {
            "id": 1700000000000, "title": "Water plants", "experience": 50,
            "deadline": "2024-05-01T12:00:00.000Z", "label": None,
            "createdAt": "2024-04-01T09:30:00.000Z",
        }
        t = Task.from_document(doc)
        assert t.id == "1700000000000"
        assert t.deadline == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert format_timestamp(t.created_at) == "2024-04-01T09:30:00Z"

    def test_from_document_without_id(self):
        t = Task.from_document({"title": "No id"}, id_factory=lambda: "generated")
        assert t.id == "generated"
        with pytest.raises(ValueError):
            Task.from_document({"title": "No id"})


# ──── User progress tests ─────────────────────────────────────────────────────
class TestUserProgress:

    def test_levels(self):
        assert level_for(0) == 1
        assert level_for(99) == 1
        assert level_for(100) == 2
        assert level_for(399) == 2
        assert level_for(400) == 3
        assert xp_for_level(1) == 0
        assert xp_for_level(3) == 400

    def test_apply_recomputes_level(self):
        p = UserProgress().apply(xp_delta=450, completed_delta=1)
        assert p.xp == 450 and p.level == 3 and p.tasks_completed == 1
        assert p.xp_to_next_level() == 900 - 450

    def test_apply_never_goes_negative(self):
        p = UserProgress(xp=50, level=1, tasks_completed=0).apply(xp_delta=-105, completed_delta=-1)
        assert p.xp == 0
        assert p.tasks_completed == 0

    def test_coerce_number(self):
        assert coerce_number(None, 0) == 0
        assert coerce_number("", 1) == 1
        assert coerce_number("0", 1) == 1
        assert coerce_number("12", 0) == 12
        assert coerce_number(12.6, 0) == 13

    def test_apply_keeps_level_when_xp_unchanged(self):
        p = UserProgress(xp=0, level=5, tasks_completed=2).apply(xp_delta=0)
        assert p.level == 5
        assert p.tasks_completed == 2

    def test_coerce_number_falls_back_on_garbage(self):
        assert coerce_number("abc", 0) == 0
        assert coerce_number("lots", 1) == 1
        assert coerce_number(float("nan"), 1) == 1
        assert coerce_number({"xp": 1}, 0) == 0
        assert coerce_number([3], 0) == 0

    def test_coerce_number_rejects_infinity(self):
        with pytest.raises(ValueError):
            coerce_number(float("inf"), 0)
        with pytest.raises(ValueError):
            coerce_number("-Infinity", 0)


# ──── XP Calculator tests ─────────────────────────────────────────────────────
class TestXPCalculator:

    def setup_method(self):
        self.calc = XPCalculator(clock=lambda: NOW)

    def test_no_deadline_no_adjustment(self):
        assert self.calc.calculate(100) == XPBreakdown(0, 0)

    def test_zero_base_no_adjustment(self):
        assert self.calc.calculate(0, NOW + timedelta(days=5)) == XPBreakdown(0, 0)
        assert self.calc.calculate(None, NOW - timedelta(days=5)) == XPBreakdown(0, 0)

    def test_early_bonus_per_whole_day(self):
        b = self.calc.calculate(100, NOW + timedelta(days=3, hours=1))
        assert b.early_bonus == 15
        assert b.overdue_penalty == 0

    def test_same_day_completion_earns_nothing(self):
        assert self.calc.calculate(100, NOW + timedelta(hours=2)) == XPBreakdown(0, 0)

    def test_early_bonus_is_capped(self):
        assert self.calc.calculate(100, NOW + timedelta(days=40)).early_bonus == 50

    def test_penalty_per_started_day(self):
        assert self.calc.calculate(100, NOW - timedelta(hours=1)).overdue_penalty == -10
        assert self.calc.calculate(100, NOW - timedelta(days=2, hours=12)).overdue_penalty == -30

    def test_penalty_is_capped(self):
        assert self.calc.calculate(100, NOW - timedelta(days=30)).overdue_penalty == -50

    def test_iso_deadline(self):
        b = self.calc.calculate(200, "2025-01-08T12:00:00.000Z")
        assert b.early_bonus == 20

    def test_signs_always_hold(self):
        for hours in range(-300, 300, 7):
            b = self.calc.calculate(80, NOW + timedelta(hours=hours))
            assert b.early_bonus >= 0
            assert b.overdue_penalty <= 0

    def test_adjust_passes_delta_through(self):
        assert self.calc.adjust(-105) == -105


# ──── Task store tests ────────────────────────────────────────────────────────
class TestTaskStore:

    def test_failed_transform_leaves_collection(self):
        store = TaskStore([Task(id="a", title="A")])

        def broken(previous):
            previous.clear()
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update_pending(broken)
        assert [t.id for t in store.pending] == ["a"]

    def test_transforms_apply_to_latest_value(self):
        store = TaskStore()
        store.update_pending(lambda prev: prev + [Task(id="a")])
        store.update_pending(lambda prev: prev + [Task(id="b")])
        assert [t.id for t in store.pending] == ["a", "b"]

    def test_documents(self):
        store = TaskStore.from_documents(
            [{"id": "a", "title": "A", "experience": 10}],
            [{"id": "b", "title": "B", "experience": 20, "earlyBonus": 2, "overduePenalty": 0,
              "completedAt": "2025-01-06T12:00:00Z"}],
        )
        assert store.find_pending("a").experience == 10
        assert store.find_completed("b").contributed_xp() == 22
        pending, completed = store.to_documents()
        assert pending[0]["id"] == "a"
        assert completed[0]["earlyBonus"] == 2


# ──── Task lifecycle manager tests ────────────────────────────────────────────
class TestTaskManager:

    def setup_method(self):
        self.calculator = MagicMock()
        self.set_tasks = MagicMock()
        self.set_completed = MagicMock()
        self.report_error = MagicMock()
        self.celebrate = MagicMock()
        self.manager = TaskManager(
            self.calculator, self.set_tasks, self.set_completed,
            self.report_error, celebrate=self.celebrate
        )

    def pending_transform(self):
        self.set_tasks.assert_called_once()
        return self.set_tasks.call_args[0][0]

    # ── add_task
    def test_add_single_task(self):
        outcome = asyncio.run(self.manager.add_task(SingleTask(TaskInput("Test Task", 100))))
        result = self.pending_transform()([])

        assert outcome.ok
        assert len(result) == 1
        task = result[0]
        assert task.title == "Test Task"
        assert task.experience == 100
        assert isinstance(task.id, str) and task.id
        assert task.label is None
        assert parse_timestamp(format_timestamp(task.created_at)) == task.created_at

    def test_add_batch_preserves_order(self):
        batch = TaskBatch([TaskInput("Task 1", 100), TaskInput("Task 2", 200), TaskInput("Task 3")])
        asyncio.run(self.manager.add_task(batch))

        existing = Task(id="old", title="Old")
        result = self.pending_transform()([existing])
        assert [t.title for t in result] == ["Old", "Task 1", "Task 2", "Task 3"]
        assert len({t.id for t in result}) == 4

    def test_add_error_is_reported(self):
        self.set_tasks.side_effect = Exception("Test error")
        outcome = asyncio.run(self.manager.add_task(SingleTask(TaskInput("Test Task"))))
        self.report_error.assert_called_once_with("Test error")
        assert not outcome.ok
        assert outcome.error.message == "Test error"

    def test_add_unsupported_request_is_reported(self):
        outcome = asyncio.run(self.manager.add_task({"title": "raw dict"}))
        assert not outcome.ok
        self.report_error.assert_called_once()
        self.set_tasks.assert_not_called()

    # ── complete_task
    def test_complete_task(self):
        task = Task(id="123", title="Test Task", experience=100, deadline=datetime.now(timezone.utc))
        self.calculator.calculate.return_value = XPBreakdown(early_bonus=10, overdue_penalty=0)

        outcome = asyncio.run(self.manager.complete_task(task))

        self.celebrate.assert_called_once_with(task)
        self.calculator.calculate.assert_called_once_with(100, task.deadline)
        remaining = self.pending_transform()([task, Task(id="456")])
        assert [t.id for t in remaining] == ["456"]

        completed = self.set_completed.call_args[0][0]([])
        assert len(completed) == 1
        assert completed[0].id == "123" and completed[0].title == "Test Task"
        assert completed[0].completed_at is not None
        assert completed[0].early_bonus == 10 and completed[0].overdue_penalty == 0
        assert outcome.ok and outcome.xp_delta == 110

    def test_complete_error_is_reported(self):
        self.calculator.calculate.return_value = XPBreakdown()
        self.set_tasks.side_effect = Exception("Completion error")

        outcome = asyncio.run(self.manager.complete_task(Task(id="123")))
        self.report_error.assert_called_once_with("Completion error")
        self.set_completed.assert_not_called()
        assert not outcome.ok

    def test_complete_unknown_task_without_experience(self):
        store = TaskStore()
        manager = TaskManager(XPCalculator(), store.update_pending, store.update_completed, self.report_error)

        outcome = asyncio.run(manager.complete_task(Task(id="ghost", title="Ghost")))
        assert outcome.ok
        done = store.find_completed("ghost")
        assert done.early_bonus == 0 and done.overdue_penalty == 0
        self.report_error.assert_not_called()

    def test_complete_does_not_wait_for_celebration(self):
        task = Task(id="123", experience=10)

        async def scenario():
            never = asyncio.Event()

            async def celebrate(_task):
                await never.wait()

            manager = TaskManager(XPCalculator(), self.set_tasks, self.set_completed,
                                  self.report_error, celebrate=celebrate)
            return await asyncio.wait_for(manager.complete_task(task), timeout=1)

        outcome = asyncio.run(scenario())
        assert outcome.ok and outcome.xp_delta == 10

    # ── remove_task
    def test_remove_pending_task(self):
        outcome = self.manager.remove_task("123", False)
        remaining = self.pending_transform()([Task(id="123"), Task(id="456")])
        assert [t.id for t in remaining] == ["456"]
        self.calculator.adjust.assert_not_called()
        assert outcome.ok and outcome.xp_delta == 0

    def test_remove_completed_reverts_xp(self):
        completed_task = CompletedTask(id="123", experience=100, early_bonus=10, overdue_penalty=-5)
        self.calculator.adjust.return_value = -105
        self.set_completed.side_effect = lambda transform: transform([completed_task])

        outcome = self.manager.remove_task("123", True)

        self.calculator.adjust.assert_called_once_with(-105)
        assert outcome.xp_delta == -105

    def test_remove_unknown_completed_is_noop(self):
        other = CompletedTask(id="456", experience=10)
        results = []
        self.set_completed.side_effect = lambda transform: results.append(transform([other]))

        outcome = self.manager.remove_task("123", True)
        assert results == [[other]]
        self.calculator.adjust.assert_not_called()
        assert outcome.ok and outcome.xp_delta == 0

    def test_remove_error_is_reported(self):
        self.set_tasks.side_effect = Exception("Removal error")
        outcome = self.manager.remove_task("123", False)
        self.report_error.assert_called_once_with("Removal error")
        assert not outcome.ok

    def test_remove_missing_twice_is_noop(self):
        store = TaskStore([Task(id="keep", title="Keep")])
        manager = TaskManager(XPCalculator(), store.update_pending, store.update_completed, self.report_error)

        assert manager.remove_task("gone", False).ok
        assert manager.remove_task("gone", False).ok
        assert [t.id for t in store.pending] == ["keep"]
        self.report_error.assert_not_called()

    # ── update_task
    def test_update_merges_fields(self):
        existing = Task(id="123", title="Old Task", experience=100, created_at=NOW)
        self.manager.update_task("123", {"id": "999", "title": "Updated Task"})

        result = self.pending_transform()([existing])
        assert result[0].id == "123"
        assert result[0].title == "Updated Task"
        assert result[0].experience == 100
        assert result[0].created_at == NOW

    def test_update_unknown_id_is_noop(self):
        existing = [Task(id="123", title="Old Task")]
        self.manager.update_task("999", {"title": "Nope"})
        assert self.pending_transform()(existing) == existing

    def test_update_error_is_reported(self):
        self.set_tasks.side_effect = Exception("Update error")
        outcome = self.manager.update_task("123", {"title": "Updated Task"})
        self.report_error.assert_called_once_with("Update error")
        assert not outcome.ok

    def test_update_with_unknown_field_is_reported(self):
        store = TaskStore([Task(id="123", title="Old")])
        manager = TaskManager(XPCalculator(), store.update_pending, store.update_completed, self.report_error)

        outcome = manager.update_task("123", {"colour": "red"})
        assert not outcome.ok
        self.report_error.assert_called_once()
        assert store.find_pending("123").title == "Old"

    def test_failing_reporter_does_not_escape(self):
        self.set_tasks.side_effect = Exception("X")
        self.report_error.side_effect = RuntimeError("reporter down")
        outcome = self.manager.update_task("123", {"title": "t"})
        assert outcome.error.message == "X"

    # ── sequencing
    def test_sequential_operations_apply_in_order(self):
        store = TaskStore()
        ids = iter(["a", "b"])
        manager = TaskManager(XPCalculator(), store.update_pending, store.update_completed,
                              self.report_error, id_factory=lambda: next(ids))

        async def scenario():
            await manager.add_task(SingleTask(TaskInput("First", 10)))
            await manager.add_task(SingleTask(TaskInput("Second", 20)))
            manager.update_task("a", {"title": "First (edited)"})
            await manager.complete_task(store.find_pending("b"))

        asyncio.run(scenario())
        assert [t.title for t in store.pending] == ["First (edited)"]
        assert [t.id for t in store.completed] == ["b"]
        self.report_error.assert_not_called()
