"""Progress reporters: observers the executor notifies as steps run."""

import logging

import click

from just_built.step import Step

logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Base reporter. Every hook is a no-op; subclasses override what they need.

    Hooks are called synchronously from the executor and should return
    quickly.
    """

    def on_step_started(self, step: Step) -> None:
        pass

    def on_step_completed(self, step: Step) -> None:
        pass

    def on_step_failed(self, step: Step) -> None:
        pass

    def on_dependencies_unmet(self, step: Step, unmet) -> None:
        pass

    def on_progress(self, context) -> None:
        pass

    def on_all_finished(self, summary) -> None:
        pass


def _format_ids(ids) -> str:
    return ", ".join(str(i) for i in sorted(ids, key=str))


class LoggingReporter(ProgressReporter):
    """Writes every event to the package logger."""

    def on_step_started(self, step: Step) -> None:
        logger.info("Step %s started: %s", step.id, step.title)

    def on_step_completed(self, step: Step) -> None:
        logger.info("Step %s completed: %s", step.id, step.title)

    def on_step_failed(self, step: Step) -> None:
        logger.warning("Step %s failed: %s", step.id, step.error)

    def on_dependencies_unmet(self, step: Step, unmet) -> None:
        logger.warning("Step %s skipped, unmet dependencies: %s", step.id, _format_ids(unmet))

    def on_progress(self, context) -> None:
        logger.debug("Progress %.0f%%", context.progress)

    def on_all_finished(self, summary) -> None:
        logger.info(
            "All steps finished: %d completed, %d failed, %d skipped",
            summary.completed, summary.failed, summary.skipped,
        )


class EchoReporter(ProgressReporter):
    """One line per event on the terminal (CLI binding)."""

    def on_step_started(self, step: Step) -> None:
        click.echo(f"→ Step {step.id}: {step.title}")

    def on_step_completed(self, step: Step) -> None:
        click.echo(f"  ✓ Step {step.id} completed")

    def on_step_failed(self, step: Step) -> None:
        click.echo(f"  ✗ Step {step.id} failed: {step.error}")

    def on_dependencies_unmet(self, step: Step, unmet) -> None:
        click.echo(f"  ⏳ Step {step.id} waiting on: {_format_ids(unmet)}")

    def on_progress(self, context) -> None:
        click.echo(f"  Progress: {context.progress:.0f}%")

    def on_all_finished(self, summary) -> None:
        click.echo()
        click.echo(
            f"All steps finished: {summary.completed} completed, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )
        if summary.cancelled:
            click.echo("  (run was cancelled)")
