"""Unit tests for dependency-gated step execution."""

import logging
import threading

import pytest

from just_built.executor import (
    OUTCOME_ALREADY_COMPLETED,
    OUTCOME_COMPLETED,
    OUTCOME_DEPENDENCIES_UNMET,
    OUTCOME_FAILED,
    ExecutionContext,
    Executor,
)
from just_built.plan import NotFoundError, Plan
from just_built.producer import ProducerError, StepProducer
from just_built.reporter import LoggingReporter, ProgressReporter
from just_built.step import COMPLETED, FAILED, PENDING, RUNNING, create_step


# =============================================================================
# FIXTURES
# =============================================================================

class FakeProducer(StepProducer):
    """Returns 'code for <id>' unless the id is set to fail."""

    def __init__(self, fail_ids=(), crash_ids=()):
        self.fail_ids = set(fail_ids)
        self.crash_ids = set(crash_ids)
        self.calls = []
        self.statuses_seen = []

    def produce(self, step, plan_context):
        self.calls.append(step.id)
        self.statuses_seen.append(step.status)
        if step.id in self.fail_ids:
            raise ProducerError(f"step {step.id} broke")
        if step.id in self.crash_ids:
            raise RuntimeError("unexpected")
        return f"code for {step.id}"


class RecordingReporter(ProgressReporter):
    """Keeps every event as a tuple."""

    def __init__(self):
        self.events = []

    def on_step_started(self, step):
        self.events.append(("started", step.id))

    def on_step_completed(self, step):
        self.events.append(("completed", step.id))

    def on_step_failed(self, step):
        self.events.append(("failed", step.id))

    def on_dependencies_unmet(self, step, unmet):
        self.events.append(("unmet", step.id, frozenset(unmet)))

    def on_progress(self, context):
        self.events.append(("progress", context.progress))

    def on_all_finished(self, summary):
        self.events.append(("finished", summary.completed, summary.failed, summary.skipped))


def make_plan(*steps):
    plan = Plan(request="Build a landing page")
    for step in steps:
        plan.add_step(step)
    return plan


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def reporter():
    return RecordingReporter()


def make_executor(producer, reporter=None, sleeps=None, delay=3.0):
    recorded = sleeps if sleeps is not None else []
    return Executor(producer, reporter=reporter, step_delay_s=delay, sleep=recorded.append)


# =============================================================================
# run_step
# =============================================================================

class TestRunStep:
    """Test running a single step."""

    def test_step_without_dependencies_completes(self, reporter):
        """A step with no prerequisites runs straight through."""
        producer = FakeProducer()
        plan = make_plan(create_step(1, "Setup", ""))
        outcome = make_executor(producer, reporter).run_step(plan, 1)

        step = plan.get_step(1)
        assert outcome.outcome == OUTCOME_COMPLETED
        assert outcome.result == "code for 1"
        assert step.status == COMPLETED
        assert step.result == "code for 1"
        assert producer.statuses_seen == [RUNNING]
        assert reporter.events == [("started", 1), ("completed", 1)]

    def test_producer_failure_is_recorded_not_raised(self, reporter):
        """ProducerError ends in FAILED and is returned as an outcome."""
        plan = make_plan(create_step(1, "Setup", ""))
        outcome = make_executor(FakeProducer(fail_ids=[1]), reporter).run_step(plan, 1)

        step = plan.get_step(1)
        assert outcome.outcome == OUTCOME_FAILED
        assert "broke" in outcome.error
        assert step.status == FAILED
        assert step.result is None
        assert reporter.events == [("started", 1), ("failed", 1)]

    def test_unexpected_exception_is_also_a_failure(self):
        """Any producer exception leaves the step FAILED, never RUNNING."""
        plan = make_plan(create_step(1, "Setup", ""))
        outcome = make_executor(FakeProducer(crash_ids=[1])).run_step(plan, 1)

        assert outcome.outcome == OUTCOME_FAILED
        assert "RuntimeError" in outcome.error
        assert plan.get_step(1).status == FAILED

    def test_failed_step_can_be_retried(self):
        """A failed step goes back through RUNNING on the next call."""
        producer = FakeProducer(fail_ids=[1])
        plan = make_plan(create_step(1, "Setup", ""))
        executor = make_executor(producer)
        executor.run_step(plan, 1)

        producer.fail_ids.clear()
        outcome = executor.run_step(plan, 1)

        assert outcome.outcome == OUTCOME_COMPLETED
        assert producer.statuses_seen == [RUNNING, RUNNING]
        assert plan.get_step(1).error is None

    def test_unknown_step_raises(self):
        """Missing ids are a caller error."""
        with pytest.raises(NotFoundError):
            make_executor(FakeProducer()).run_step(make_plan(), 7)

    def test_completed_step_is_not_rerun(self):
        """Running a completed step again is a no-op."""
        producer = FakeProducer()
        plan = make_plan(create_step(1, "Setup", ""))
        executor = make_executor(producer)
        executor.run_step(plan, 1)
        outcome = executor.run_step(plan, 1)

        assert outcome.outcome == OUTCOME_ALREADY_COMPLETED
        assert producer.calls == [1]

    def test_context_tracks_active_step(self):
        """The active step id is set while running and cleared afterwards."""
        seen = []

        class ContextProducer(StepProducer):
            def produce(self, step, plan_context):
                seen.append(context.active_step_id)
                return "ok"

        context = ExecutionContext()
        plan = make_plan(create_step(1, "Setup", ""))
        make_executor(ContextProducer()).run_step(plan, 1, context)

        assert seen == [1]
        assert context.active_step_id is None

    def test_executing_flag(self):
        """executing is true only while a run is in flight."""
        flags = []

        class FlagProducer(StepProducer):
            def produce(self, step, plan_context):
                flags.append(executor.executing)
                return "ok"

        executor = make_executor(FlagProducer())
        assert not executor.executing
        executor.run_step(make_plan(create_step(1, "Setup", "")), 1)
        assert flags == [True]
        assert not executor.executing


class TestDependencyGating:
    """Test that unmet dependencies block a step without touching it."""

    def test_unmet_dependency_blocks(self, reporter):
        """Step 2 cannot run before step 1 completes."""
        producer = FakeProducer()
        plan = make_plan(create_step(1, "Setup", ""), create_step(2, "Layout", "", dependencies=[1]))
        outcome = make_executor(producer, reporter).run_step(plan, 2)

        assert outcome.outcome == OUTCOME_DEPENDENCIES_UNMET
        assert outcome.dependencies_unmet
        assert outcome.unmet_dependencies == frozenset({1})
        assert plan.get_step(2).status == PENDING
        assert producer.calls == []
        assert reporter.events == [("unmet", 2, frozenset({1}))]

    def test_runs_once_dependency_completes(self):
        """After step 1 succeeds, step 2 runs to a terminal state."""
        producer = FakeProducer()
        plan = make_plan(create_step(1, "Setup", ""), create_step(2, "Layout", "", dependencies=[1]))
        executor = make_executor(producer)

        executor.run_step(plan, 2)
        executor.run_step(plan, 1)
        outcome = executor.run_step(plan, 2)

        assert outcome.outcome == OUTCOME_COMPLETED
        assert plan.get_step(2).status == COMPLETED
        assert producer.calls == [1, 2]

    def test_failed_dependency_blocks(self):
        """A FAILED prerequisite counts as unmet."""
        plan = make_plan(create_step(1, "Setup", ""), create_step(2, "Layout", "", dependencies=[1]))
        executor = make_executor(FakeProducer(fail_ids=[1]))
        executor.run_step(plan, 1)
        outcome = executor.run_step(plan, 2)

        assert outcome.unmet_dependencies == frozenset({1})
        assert plan.get_step(2).status == PENDING

    def test_only_unmet_subset_reported(self):
        """Completed dependencies are left out of the unmet set."""
        plan = make_plan(
            create_step(1, "A", ""),
            create_step(2, "B", ""),
            create_step(3, "C", "", dependencies=[1, 2]),
        )
        executor = make_executor(FakeProducer())
        executor.run_step(plan, 1)
        outcome = executor.run_step(plan, 3)

        assert outcome.unmet_dependencies == frozenset({2})

    def test_missing_dependency_never_satisfied(self):
        """A dependency on an id outside the plan stays unmet."""
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", "", dependencies=[3]))
        executor = make_executor(FakeProducer())
        for _ in range(3):
            outcome = executor.run_step(plan, 2)
            assert outcome.unmet_dependencies == frozenset({3})
        assert plan.get_step(2).status == PENDING

    def test_removed_dependency_stays_unmet(self):
        """Removing a prerequisite leaves the dependent blocked."""
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", "", dependencies=[1]))
        plan.remove_step(1)
        outcome = make_executor(FakeProducer()).run_step(plan, 2)
        assert outcome.unmet_dependencies == frozenset({1})


# =============================================================================
# run_all
# =============================================================================

class TestRunAll:
    """Test single-pass execution of a whole plan."""

    def test_runs_chain_in_order(self, reporter, sleeps):
        """A linear chain completes in one pass with delays between steps."""
        producer = FakeProducer()
        plan = make_plan(
            create_step(1, "A", ""),
            create_step(2, "B", "", dependencies=[1]),
            create_step(3, "C", "", dependencies=[2]),
        )
        summary = make_executor(producer, reporter, sleeps).run_all(plan)

        assert producer.calls == [1, 2, 3]
        assert summary.completed == 3
        assert summary.failed == 0
        assert summary.skipped == 0
        assert sleeps == [3.0, 3.0]
        assert plan.progress_percent == 100.0
        assert reporter.events[-1] == ("finished", 3, 0, 0)

    def test_progress_reported_after_each_step(self, reporter):
        """Progress climbs to 100 as each index is visited."""
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", ""), create_step(3, "C", ""), create_step(4, "D", ""))
        make_executor(FakeProducer(), reporter).run_all(plan)

        progress = [e[1] for e in reporter.events if e[0] == "progress"]
        assert progress == [25.0, 50.0, 75.0, 100.0]

    def test_notifications_ordered_per_step(self, reporter):
        """started always precedes completed/failed for the same step."""
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", ""))
        make_executor(FakeProducer(fail_ids=[2]), reporter).run_all(plan)

        names = [e[:2] for e in reporter.events if e[0] in ("started", "completed", "failed")]
        assert names == [("started", 1), ("completed", 1), ("started", 2), ("failed", 2)]

    def test_every_step_failing_still_finishes(self, reporter):
        """run_all never raises, even when all steps fail."""
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", ""), create_step(3, "C", ""))
        summary = make_executor(FakeProducer(fail_ids=[1, 2, 3]), reporter).run_all(plan)

        assert summary.failed == 3
        assert all(s.status == FAILED for s in plan.steps)
        assert reporter.events[-1] == ("finished", 0, 3, 0)

    def test_failure_skips_dependents(self):
        """A failed step blocks its dependents for the rest of the pass."""
        producer = FakeProducer(fail_ids=[1])
        plan = make_plan(
            create_step(1, "A", ""),
            create_step(2, "B", "", dependencies=[1]),
            create_step(3, "C", ""),
        )
        summary = make_executor(producer).run_all(plan)

        assert producer.calls == [1, 3]
        assert (summary.completed, summary.failed, summary.skipped) == (1, 1, 1)
        assert plan.get_step(2).status == PENDING

    def test_forward_dependency_not_retried(self):
        """A step depending on a later step is skipped, not reordered."""
        producer = FakeProducer()
        plan = make_plan(
            create_step(1, "A", "", dependencies=[2]),
            create_step(2, "B", ""),
        )
        summary = make_executor(producer).run_all(plan)

        assert producer.calls == [2]
        assert summary.skipped == 1
        assert plan.get_step(1).status == PENDING
        assert plan.get_step(2).status == COMPLETED

    def test_missing_dependency_terminates(self):
        """A dependency on a missing id is skipped; the pass still ends."""
        producer = FakeProducer()
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", "", dependencies=[3]))
        summary = make_executor(producer).run_all(plan)

        assert producer.calls == [1]
        assert summary.completed == 1
        assert summary.skipped == 1
        assert summary.outcomes[1].unmet_dependencies == frozenset({3})

    def test_completed_steps_not_rerun(self, sleeps):
        """Already completed steps are skipped without a producer call."""
        producer = FakeProducer()
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", ""))
        executor = make_executor(producer, sleeps=sleeps)
        executor.run_step(plan, 1)

        summary = executor.run_all(plan)

        assert producer.calls == [1, 2]
        assert summary.already_completed == 1
        assert summary.completed == 1
        assert sleeps == []

    def test_producer_called_at_most_once_per_step(self):
        """One pass calls the producer no more than once per step."""
        producer = FakeProducer(fail_ids=[2])
        plan = make_plan(*(create_step(i, f"S{i}", "") for i in range(1, 6)))
        make_executor(producer).run_all(plan)
        assert sorted(producer.calls) == [1, 2, 3, 4, 5]

    def test_empty_plan(self, reporter):
        """An empty plan finishes immediately."""
        summary = make_executor(FakeProducer(), reporter).run_all(make_plan())
        assert summary.outcomes == []
        assert reporter.events == [("finished", 0, 0, 0)]

    def test_zero_delay_never_sleeps(self, sleeps):
        """A delay of 0 skips the sleep call."""
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", ""))
        make_executor(FakeProducer(), sleeps=sleeps, delay=0).run_all(plan)
        assert sleeps == []


class TestCancellation:
    """Test cooperative cancellation between steps."""

    def test_cancel_before_start(self, reporter):
        """A pre-set event stops the run before any step."""
        producer = FakeProducer()
        cancel = threading.Event()
        cancel.set()
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", ""))

        summary = make_executor(producer, reporter).run_all(plan, cancel=cancel)

        assert summary.cancelled
        assert producer.calls == []
        assert reporter.events[-1] == ("finished", 0, 0, 0)

    def test_cancel_mid_run_lets_current_step_finish(self):
        """Cancelling during a step stops before the next one."""
        cancel = threading.Event()

        class CancellingProducer(FakeProducer):
            def produce(self, step, plan_context):
                result = super().produce(step, plan_context)
                cancel.set()
                return result

        producer = CancellingProducer()
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", ""))
        summary = make_executor(producer).run_all(plan, cancel=cancel)

        assert summary.cancelled
        assert producer.calls == [1]
        assert plan.get_step(1).status == COMPLETED
        assert plan.get_step(2).status == PENDING


class TestIndependentExecutors:
    """Separate executors with separate plans share nothing."""

    def test_two_plans_in_threads(self):
        """Two executors run their own plans concurrently."""
        plans = [
            make_plan(*(create_step(i, f"S{i}", "", dependencies=[i - 1] if i > 1 else []) for i in range(1, 4)))
            for _ in range(2)
        ]
        summaries = [None, None]

        def worker(index):
            summaries[index] = make_executor(FakeProducer()).run_all(plans[index])

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert [s.completed for s in summaries] == [3, 3]
        assert all(p.progress_percent == 100.0 for p in plans)


class TestLoggingReporter:
    """Test the logger-backed reporter."""

    def test_events_logged(self, caplog):
        """Started, failed, blocked and finished events reach the log."""
        plan = make_plan(create_step(1, "A", ""), create_step(2, "B", "", dependencies=[1]))
        with caplog.at_level(logging.DEBUG, logger="just_built"):
            make_executor(FakeProducer(fail_ids=[1]), LoggingReporter()).run_all(plan)

        text = caplog.text
        assert "Step 1 started" in text
        assert "Step 1 failed" in text
        assert "Step 2 skipped, unmet dependencies: 1" in text
        assert "0 completed, 1 failed, 1 skipped" in text


class RaisingReporter(ProgressReporter):
    """Every hook blows up, as a reporter whose display has gone away would."""

    def __init__(self):
        self.calls = []

    def _boom(self, name):
        self.calls.append(name)
        raise RuntimeError("ui gone")

    def on_step_started(self, step):
        self._boom("started")

    def on_step_completed(self, step):
        self._boom("completed")

    def on_step_failed(self, step):
        self._boom("failed")

    def on_dependencies_unmet(self, step, unmet):
        self._boom("unmet")

    def on_progress(self, context):
        self._boom("progress")

    def on_all_finished(self, summary):
        self._boom("finished")


class TestRaisingReporter:
    """A reporter that raises never changes execution results."""

    def test_run_step_completes(self):
        """The step still reaches COMPLETED when on_step_started raises."""
        plan = make_plan(create_step(1, "A", ""))
        executor = make_executor(FakeProducer(), RaisingReporter())

        outcome = executor.run_step(plan, 1)

        assert outcome.outcome == OUTCOME_COMPLETED
        assert plan.get_step(1).status == COMPLETED
        assert not executor.executing

    def test_run_step_failure_recorded(self):
        """Producer failures are still recorded when on_step_failed raises."""
        plan = make_plan(create_step(1, "A", ""))
        outcome = make_executor(FakeProducer(fail_ids=[1]), RaisingReporter()).run_step(plan, 1)

        assert outcome.outcome == OUTCOME_FAILED
        assert plan.get_step(1).status == FAILED

    def test_run_all_finishes(self, caplog):
        """run_all visits every step and returns its summary."""
        plan = make_plan(
            create_step(1, "A", ""),
            create_step(2, "B", "", dependencies=[1]),
            create_step(3, "C", "", dependencies=[9]),
        )
        reporter = RaisingReporter()
        with caplog.at_level(logging.ERROR, logger="just_built"):
            summary = make_executor(FakeProducer(), reporter).run_all(plan)

        assert (summary.completed, summary.failed, summary.skipped) == (2, 0, 1)
        assert [s.status for s in plan.steps] == [COMPLETED, COMPLETED, PENDING]
        assert RUNNING not in [s.status for s in plan.steps]
        assert "finished" in reporter.calls
        assert "Reporter hook on_step_started raised" in caplog.text
        assert "Reporter hook on_all_finished raised" in caplog.text
