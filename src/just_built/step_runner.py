"""Thin runner for plan files.

Loads a plan, runs one step or all of them, saves the plan back and writes
a report.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Tuple

from just_built.constants import DEFAULT_REPORTS_DIR, DEFAULT_STEP_DELAY_S
from just_built.executor import Executor, RunSummary
from just_built.plan import Plan
from just_built.plan_file import load_plan, save_plan
from just_built.producer import StepProducer, TemplateStepProducer
from just_built.reporter import ProgressReporter

logger = logging.getLogger(__name__)


def plan_name_for(plan_file: Path) -> str:
    """Reports are keyed by the plan file's stem."""
    return Path(plan_file).stem


def write_execution_report(
    plan: Plan,
    summary: RunSummary,
    plan_file: Path,
    output_dir: Path,
    start_time: datetime,
    end_time: datetime,
    mode: str,
) -> Path:
    """
    Write a structured execution report to disk.

    Report format: JSON with the run counts and per-step outcomes.
    Filename: {plan_name}_{timestamp}.json
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    plan_name = plan_name_for(plan_file)
    timestamp = end_time.strftime("%Y%m%d_%H%M%S_%f")
    report_path = output_dir / f"{plan_name}_{timestamp}.json"

    report = {
        "plan_name": plan_name,
        "plan_file": str(plan_file),
        "mode": mode,
        "total_steps": len(plan),
        "completed": summary.completed,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "already_completed": summary.already_completed,
        "cancelled": summary.cancelled,
        "progress_percent": plan.progress_percent,
        "outcomes": [
            {
                "step_id": o.step_id,
                "outcome": o.outcome,
                "error": o.error,
                "unmet_dependencies": sorted(o.unmet_dependencies, key=str),
            }
            for o in summary.outcomes
        ],
        "start_time": start_time.isoformat(),
        "end_time": end_time.isoformat(),
        "duration_seconds": (end_time - start_time).total_seconds(),
    }

    report_path.write_text(json.dumps(report, indent=2))

    return report_path


def run_plan_file(
    plan_file: Path,
    step_id=None,
    output_dir: Optional[Path] = None,
    use_graph: bool = False,
    producer: Optional[StepProducer] = None,
    reporter: Optional[ProgressReporter] = None,
    step_delay_s: float = DEFAULT_STEP_DELAY_S,
    fail_ids: Optional[Iterable] = None,
) -> Tuple[RunSummary, Path]:
    """
    Main entry point: load plan, run, save plan, write report.

    Args:
        plan_file: Path to plan definition (YAML or JSON)
        step_id: Run only this step; None runs the whole plan
        output_dir: Directory for execution reports (default: ./execution/reports/)
        use_graph: If True, run the single step through LangGraph for tracing
        producer: Step producer (default: TemplateStepProducer)
        reporter: Progress reporter notified during the run
        step_delay_s: Pause between steps in run-all mode
        fail_ids: Step ids the default producer should fail

    Returns:
        (RunSummary of this invocation, path of the written report)
    """
    plan_file = Path(plan_file)
    if output_dir is None:
        output_dir = Path(DEFAULT_REPORTS_DIR)
    if producer is None:
        producer = TemplateStepProducer(fail_ids=fail_ids)

    plan = load_plan(plan_file)
    executor = Executor(producer, reporter=reporter, step_delay_s=step_delay_s)

    start_time = datetime.now()

    if step_id is None:
        mode = "run_all"
        summary = executor.run_all(plan)
    else:
        mode = "run_step"
        if use_graph:
            from just_built.execution_graph import run_step_graph
            outcome = run_step_graph(plan, step_id, producer, reporter=reporter)
        else:
            outcome = executor.run_step(plan, step_id)
        summary = RunSummary()
        summary.record(outcome)

    end_time = datetime.now()

    save_plan(plan, plan_file)
    report_path = write_execution_report(
        plan=plan,
        summary=summary,
        plan_file=plan_file,
        output_dir=output_dir,
        start_time=start_time,
        end_time=end_time,
        mode=mode,
    )
    logger.info("Execution report written to %s", report_path)

    return summary, report_path
