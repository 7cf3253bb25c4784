"""CLI entrypoint for the step-plan engine."""

from pathlib import Path

import click
from dotenv import load_dotenv

from just_built.config import Config, ConfigError, load_config
from just_built.constants import AVAILABLE_MODELS, AVAILABLE_MODELS_CSV

# Load .env file on CLI startup
load_dotenv()


def parse_step_id(raw: str):
    """Numeric ids are ints in plan files; anything else stays a string."""
    raw = raw.strip()
    if raw.lstrip("-").isdigit():
        return int(raw)
    return raw


def _load_config_or_exit() -> Config:
    try:
        return load_config()
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)


def _load_plan_or_exit(plan_file: str):
    from just_built.plan_file import load_plan

    try:
        return load_plan(Path(plan_file))
    except Exception as e:
        click.echo(f"Error: Could not load plan {plan_file}: {e}", err=True)
        raise SystemExit(1)


@click.group()
@click.version_option(package_name="just-built-engine")
@click.option("-v", "--verbose", count=True, help="Log progress (-v info, -vv debug)")
def cli(verbose: int):
    """Just Built - generate development plans and execute them step by step."""
    if verbose:
        from just_built.log import setup_logging
        setup_logging("DEBUG" if verbose > 1 else "INFO")


@cli.command()
def models():
    """List the models the planner can use."""
    click.echo(f"{'ID':<10} {'NAME':<20} {'AVAILABLE':<10}")
    click.echo("-" * 42)
    for model in AVAILABLE_MODELS:
        available = "yes" if model["available"] else "no"
        click.echo(f"{model['id']:<10} {model['name']:<20} {available:<10}")


@cli.command()
def check_config():
    """Check that environment configuration is usable."""
    try:
        config = load_config()
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)

    click.echo("Configuration loaded successfully!")
    click.echo(f"  JUST_BUILT_MODEL: {config.default_model}")
    click.echo(f"  JUST_BUILT_STEP_DELAY_S: {config.step_delay_s}")
    click.echo(f"  JUST_BUILT_REPORTS_DIR: {config.reports_dir}")
    click.echo(f"  JUST_BUILT_LOG_LEVEL: {config.log_level}")


# Plan commands
@cli.group()
def plan():
    """Create and edit plan files."""
    pass


@plan.command("generate")
@click.argument("request")
@click.option(
    "--model",
    default=None,
    help=f"Planning model ({AVAILABLE_MODELS_CSV}); defaults to JUST_BUILT_MODEL",
)
@click.option(
    "--out",
    type=click.Path(),
    default="plan.yaml",
    help="Plan file to write (.yaml, .yml or .json)",
)
def plan_generate(request: str, model: str, out: str):
    """Generate a step plan for REQUEST."""
    from just_built.plan_file import save_plan
    from just_built.planner import PlannerUnavailable, TemplatePlanner

    config = _load_config_or_exit()
    model = model or config.default_model

    try:
        new_plan = TemplatePlanner().generate(request, model)
        path = save_plan(new_plan, Path(out))
    except PlannerUnavailable as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Plan generated with {model}: {len(new_plan)} steps")
    for step in new_plan.steps:
        click.echo(f"  {step.id}. {step.title} ({step.estimated_time})")
    click.echo(f"\nSaved to {path}")


@plan.command("show")
@click.argument("plan_file", type=click.Path(exists=True))
def plan_show(plan_file: str):
    """Show the steps of PLAN_FILE with status and dependencies."""
    current = _load_plan_or_exit(plan_file)

    if current.request:
        click.echo(f"Request: {current.request}")
    click.echo(f"{'ID':<6} {'STATUS':<12} {'DEPENDS ON':<12} TITLE")
    click.echo("-" * 60)

    for step in current.steps:
        deps = ",".join(str(d) for d in sorted(step.dependencies, key=str)) or "-"
        status_display = step.status
        if step.status == "COMPLETED":
            status_display = "✓ completed"
        elif step.status == "FAILED":
            status_display = "✗ failed"
        elif step.status == "RUNNING":
            status_display = "→ running"
        click.echo(f"{str(step.id):<6} {status_display:<12} {deps:<12} {step.title}")

    click.echo()
    click.echo(
        f"Progress: {current.completed_count}/{len(current)} steps "
        f"({current.progress_percent:.0f}%)"
    )


@plan.command("add")
@click.argument("plan_file", type=click.Path(exists=True))
@click.option("--title", required=True, help="Step title")
@click.option("--description", default="", help="Step description")
@click.option("--depends-on", "depends_on", multiple=True, help="Prerequisite step id (repeatable)")
def plan_add(plan_file: str, title: str, description: str, depends_on: tuple):
    """Append a new step to PLAN_FILE."""
    from just_built.plan_file import save_plan
    from just_built.step import ValidationError

    current = _load_plan_or_exit(plan_file)
    try:
        step = current.new_step(title, description, [parse_step_id(d) for d in depends_on])
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    save_plan(current, Path(plan_file))
    click.echo(f"Step added: {step.id}. {step.title}")


@plan.command("edit")
@click.argument("plan_file", type=click.Path(exists=True))
@click.argument("step_id")
@click.option("--title", default=None, help="New title")
@click.option("--description", default=None, help="New description")
def plan_edit(plan_file: str, step_id: str, title: str, description: str):
    """Change the title or description of STEP_ID."""
    from just_built.plan import NotFoundError
    from just_built.plan_file import save_plan

    if title is None and description is None:
        click.echo("Error: Must specify --title and/or --description", err=True)
        raise SystemExit(1)

    current = _load_plan_or_exit(plan_file)
    try:
        step = current.edit_step(parse_step_id(step_id), title=title, description=description)
    except NotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    save_plan(current, Path(plan_file))
    click.echo(f"Step updated: {step.id}. {step.title}")


@plan.command("remove")
@click.argument("plan_file", type=click.Path(exists=True))
@click.argument("step_id")
def plan_remove(plan_file: str, step_id: str):
    """Remove STEP_ID from PLAN_FILE (dependencies on it are left in place)."""
    from just_built.plan import NotFoundError
    from just_built.plan_file import save_plan

    current = _load_plan_or_exit(plan_file)
    try:
        step = current.remove_step(parse_step_id(step_id))
    except NotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    save_plan(current, Path(plan_file))
    click.echo(f"Step removed: {step.id}. {step.title}")

    dangling = [s.id for s in current.steps if step.id in s.dependencies]
    if dangling:
        click.echo(f"  Note: steps {', '.join(str(i) for i in dangling)} still depend on {step.id}")


# Execution commands
@cli.command("run-step")
@click.argument("plan_file", type=click.Path(exists=True))
@click.argument("step_id")
@click.option(
    "--reports-dir",
    type=click.Path(),
    default=None,
    help="Directory for execution reports (default: JUST_BUILT_REPORTS_DIR)",
)
@click.option("--graph", "use_graph", is_flag=True, help="Run through the LangGraph trace harness")
@click.option("--fail-step", "fail_steps", multiple=True, help="Force this step id to fail (repeatable)")
def run_step(plan_file: str, step_id: str, reports_dir: str, use_graph: bool, fail_steps: tuple):
    """Execute a single STEP_ID of PLAN_FILE.

    The step only runs when every step it depends on is completed.
    """
    from just_built.executor import OUTCOME_ALREADY_COMPLETED, OUTCOME_FAILED
    from just_built.plan import NotFoundError
    from just_built.reporter import EchoReporter
    from just_built.step_runner import run_plan_file

    config = _load_config_or_exit()

    try:
        summary, report_path = run_plan_file(
            Path(plan_file),
            step_id=parse_step_id(step_id),
            output_dir=Path(reports_dir or config.reports_dir),
            use_graph=use_graph,
            reporter=EchoReporter(),
            fail_ids=[parse_step_id(s) for s in fail_steps],
        )
    except NotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    outcome = summary.outcomes[0]
    if outcome.outcome == OUTCOME_ALREADY_COMPLETED:
        click.echo(f"Step {outcome.step_id} is already completed.")
    click.echo(f"  Report: {report_path}")

    if outcome.outcome == OUTCOME_FAILED:
        raise SystemExit(1)


@cli.command("run-all")
@click.argument("plan_file", type=click.Path(exists=True))
@click.option(
    "--reports-dir",
    type=click.Path(),
    default=None,
    help="Directory for execution reports (default: JUST_BUILT_REPORTS_DIR)",
)
@click.option(
    "--delay",
    type=float,
    default=None,
    help="Seconds to pause between steps (default: JUST_BUILT_STEP_DELAY_S)",
)
@click.option("--fail-step", "fail_steps", multiple=True, help="Force this step id to fail (repeatable)")
def run_all(plan_file: str, reports_dir: str, delay: float, fail_steps: tuple):
    """Execute every pending step of PLAN_FILE in order."""
    from just_built.reporter import EchoReporter
    from just_built.step_runner import run_plan_file

    config = _load_config_or_exit()

    try:
        summary, report_path = run_plan_file(
            Path(plan_file),
            output_dir=Path(reports_dir or config.reports_dir),
            reporter=EchoReporter(),
            step_delay_s=config.step_delay_s if delay is None else delay,
            fail_ids=[parse_step_id(s) for s in fail_steps],
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"  Report: {report_path}")

    if summary.failed:
        raise SystemExit(1)


@cli.command("observe")
@click.argument("plan_name")
@click.option(
    "--reports-dir",
    type=click.Path(),
    default=None,
    help="Directory for execution reports (default: JUST_BUILT_REPORTS_DIR)",
)
def observe(plan_name: str, reports_dir: str):
    """Show a summary of a plan's execution history.

    PLAN_NAME: The plan file name without its extension

    Read-only.
    """
    from just_built.observe import print_summary

    config = _load_config_or_exit()
    print_summary(plan_name, reports_dir=Path(reports_dir or config.reports_dir))


if __name__ == "__main__":
    cli()
