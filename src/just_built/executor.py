"""Step execution: dependency-gated runs of one step or a whole plan.

run_step never raises for producer failures; the failure is recorded on the
step and reported. run_all is a single pass in plan order, not a topological
sort: a step whose dependency sits later in the list (or never completes) is
skipped for this pass rather than reordered or retried.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Optional

from just_built.constants import DEFAULT_STEP_DELAY_S
from just_built.plan import Plan
from just_built.producer import ProducerError, StepProducer
from just_built.reporter import ProgressReporter
from just_built.step import Step, StepId

logger = logging.getLogger(__name__)

OUTCOME_COMPLETED = "completed"
OUTCOME_FAILED = "failed"
OUTCOME_DEPENDENCIES_UNMET = "dependencies_unmet"
OUTCOME_ALREADY_COMPLETED = "already_completed"


@dataclass
class StepOutcome:
    """What happened when a step was asked to run."""
    step_id: StepId
    outcome: str
    result: Optional[str] = None
    error: Optional[str] = None
    unmet_dependencies: FrozenSet[StepId] = frozenset()

    @property
    def dependencies_unmet(self) -> bool:
        return self.outcome == OUTCOME_DEPENDENCIES_UNMET


@dataclass
class ExecutionContext:
    """Ephemeral per-run state used for progress feedback."""
    active_step_id: Optional[StepId] = None
    progress: float = 0.0
    steps_visited: int = 0

    def advance(self, index: int, total: int) -> None:
        # Never moves backwards, even if the plan shrank mid-run
        self.steps_visited = index + 1
        self.progress = max(self.progress, (index + 1) / total * 100)


@dataclass
class RunSummary:
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    already_completed: int = 0
    cancelled: bool = False
    outcomes: List[StepOutcome] = field(default_factory=list)

    def record(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.outcome == OUTCOME_COMPLETED:
            self.completed += 1
        elif outcome.outcome == OUTCOME_FAILED:
            self.failed += 1
        elif outcome.outcome == OUTCOME_DEPENDENCIES_UNMET:
            self.skipped += 1
        elif outcome.outcome == OUTCOME_ALREADY_COMPLETED:
            self.already_completed += 1


def unmet_dependencies(plan: Plan, step: Step) -> FrozenSet[StepId]:
    """Dependencies of step that are not COMPLETED in plan (missing ids count as unmet)."""
    return frozenset(step.dependencies - plan.completed_ids())


class Executor:
    """
    Runs steps of a plan through a StepProducer.

    One executor drives one plan at a time; separate executors with
    separate plans share no state.
    """

    def __init__(
        self,
        producer: StepProducer,
        reporter: Optional[ProgressReporter] = None,
        step_delay_s: float = DEFAULT_STEP_DELAY_S,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.producer = producer
        self.reporter = reporter or ProgressReporter()
        self.step_delay_s = step_delay_s
        self.sleep = sleep
        self._depth = 0

    @property
    def executing(self) -> bool:
        """True while run_step, run_all or a traced graph run is in progress."""
        return self._depth > 0

    @contextmanager
    def running(self):
        """Mark the executor busy for the duration of the block."""
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1

    def _notify(self, hook: str, *args) -> None:
        """Call a reporter hook; a failing hook is logged and never stops execution."""
        try:
            getattr(self.reporter, hook)(*args)
        except Exception:
            logger.exception("Reporter hook %s raised", hook)

    # --- Phases (shared with the traced graph) ---

    def gate(self, plan: Plan, step: Step) -> Optional[StepOutcome]:
        """
        Check whether step may run.

        Returns an outcome when it may not (already completed, or
        dependencies unmet), None when it may. Never changes status.
        """
        if step.is_completed:
            return StepOutcome(step_id=step.id, outcome=OUTCOME_ALREADY_COMPLETED, result=step.result)

        unmet = unmet_dependencies(plan, step)
        if unmet:
            logger.debug("Step %s blocked on %s", step.id, sorted(unmet, key=str))
            self._notify("on_dependencies_unmet", step, unmet)
            return StepOutcome(
                step_id=step.id,
                outcome=OUTCOME_DEPENDENCIES_UNMET,
                unmet_dependencies=unmet,
            )
        return None

    def produce(self, plan: Plan, step: Step) -> StepOutcome:
        """Mark step running, call the producer, record the terminal state."""
        step.mark_running()
        self._notify("on_step_started", step)

        try:
            result = self.producer.produce(step, plan.context())
        except ProducerError as e:
            step.mark_failed(str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Producer raised unexpectedly for step %s", step.id)
            step.mark_failed(f"{type(e).__name__}: {e}")
        else:
            step.mark_completed(result)
            self._notify("on_step_completed", step)
            return StepOutcome(step_id=step.id, outcome=OUTCOME_COMPLETED, result=result)

        self._notify("on_step_failed", step)
        return StepOutcome(step_id=step.id, outcome=OUTCOME_FAILED, error=step.error)

    # --- Public API ---

    def run_step(
        self,
        plan: Plan,
        step_id: StepId,
        context: Optional[ExecutionContext] = None,
    ) -> StepOutcome:
        """
        Run one step if its dependencies are all COMPLETED.

        Raises:
            NotFoundError: If step_id is not in the plan.

        Returns:
            StepOutcome. Producer failures come back as OUTCOME_FAILED,
            blocked steps as OUTCOME_DEPENDENCIES_UNMET with status untouched.
        """
        step = plan.get_step(step_id)

        with self.running():
            try:
                if context is not None:
                    context.active_step_id = step.id

                outcome = self.gate(plan, step)
                if outcome is None:
                    outcome = self.produce(plan, step)
                return outcome
            finally:
                if context is not None:
                    context.active_step_id = None

    def run_all(
        self,
        plan: Plan,
        cancel: Optional[threading.Event] = None,
    ) -> RunSummary:
        """
        Visit every step once in plan order and run those not yet COMPLETED.

        Sleeps step_delay_s between consecutive runs. If cancel is set, stops
        before the next step; an in-flight producer call is never interrupted.
        Always finishes with on_all_finished, whatever the individual results.
        """
        summary = RunSummary()
        context = ExecutionContext()
        steps = list(plan.steps)
        total = len(steps)
        ran_any = False

        with self.running():
            for index, step in enumerate(steps):
                if cancel is not None and cancel.is_set():
                    logger.info("Run cancelled before step %s", step.id)
                    summary.cancelled = True
                    break

                if step.is_completed:
                    summary.record(StepOutcome(
                        step_id=step.id,
                        outcome=OUTCOME_ALREADY_COMPLETED,
                        result=step.result,
                    ))
                else:
                    if ran_any and self.step_delay_s > 0:
                        self.sleep(self.step_delay_s)
                    ran_any = True
                    summary.record(self.run_step(plan, step.id, context))

                context.advance(index, total)
                self._notify("on_progress", context)

        self._notify("on_all_finished", summary)
        return summary
