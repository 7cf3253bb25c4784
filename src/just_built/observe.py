"""Minimal observation surface for plan runs.

Read-only. Summarises the execution reports written by step_runner.
"""

import json
from pathlib import Path
from typing import Optional

import click

from just_built.constants import DEFAULT_REPORTS_DIR


def find_reports(plan_name: str, reports_dir: Path) -> list[dict]:
    """Find all execution reports for a plan, most recent first."""
    reports = []

    if not reports_dir.exists():
        return reports

    for f in reports_dir.glob(f"{plan_name}_*.json"):
        try:
            data = json.loads(f.read_text())
        except (json.JSONDecodeError, IOError):
            continue
        # Another plan whose name starts with plan_name + "_"
        if data.get("plan_name") != plan_name:
            continue
        data["_report_file"] = str(f)
        reports.append(data)

    reports.sort(key=lambda r: r.get("start_time", ""), reverse=True)
    return reports


def format_duration(seconds: float) -> str:
    """Format duration in human-readable form."""
    if seconds < 1:
        return f"{seconds*1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        mins = int(seconds // 60)
        secs = seconds % 60
        return f"{mins}m {secs:.0f}s"


def verdict(report: dict) -> str:
    """One-line verdict for a report."""
    if report.get("cancelled"):
        return "◐ CANCELLED - Run stopped before the last step"
    if report["failed"]:
        return f"✗ FAILED - {report['failed']} step(s) failed"
    if report["progress_percent"] >= 100:
        return "✓ COMPLETE - Every step completed"
    if report["skipped"]:
        return f"⏳ BLOCKED - {report['skipped']} step(s) waiting on dependencies"
    return "◐ IN PROGRESS - Steps remain"


def print_summary(plan_name: str, reports_dir: Optional[Path] = None) -> None:
    """Print a human-readable summary of a plan's execution history."""
    if reports_dir is None:
        reports_dir = Path(DEFAULT_REPORTS_DIR)

    reports = find_reports(plan_name, reports_dir)

    click.echo("=" * 60)
    click.echo(f"PLAN SUMMARY: {plan_name}")
    click.echo("=" * 60)
    click.echo()

    if not reports:
        click.echo("No execution records found.")
        click.echo()
        click.echo(f"Searched: {reports_dir}")
        return

    latest = reports[0]
    click.echo("LATEST EXECUTION")
    click.echo("-" * 40)
    click.echo(f"  Mode:        {latest['mode']}")
    click.echo(f"  Completed:   {latest['completed']}")
    click.echo(f"  Failed:      {latest['failed']}")
    click.echo(f"  Skipped:     {latest['skipped']}")
    click.echo(f"  Progress:    {latest['progress_percent']:.0f}% of {latest['total_steps']} steps")
    click.echo(f"  Duration:    {format_duration(latest['duration_seconds'])}")
    click.echo(f"  Time:        {latest['start_time'][:19]}")
    click.echo()

    problems = [o for o in latest.get("outcomes", []) if o["outcome"] in ("failed", "dependencies_unmet")]
    if problems:
        click.echo("  Attention:")
        for o in problems[:5]:
            if o["outcome"] == "failed":
                click.echo(f"    ✗ Step {o['step_id']}: {(o.get('error') or '')[:50]}")
            else:
                waiting = ", ".join(str(d) for d in o["unmet_dependencies"])
                click.echo(f"    ⏳ Step {o['step_id']}: waiting on {waiting}")
        click.echo()

    if len(reports) > 1:
        click.echo("HISTORY")
        click.echo("-" * 40)
        click.echo(f"  Executions:  {len(reports)}")
        for r in reports[:5]:
            status_icon = "✓" if not r["failed"] else "✗"
            click.echo(f"    {status_icon} {r['start_time'][:16]} - {r['mode']} ({r['completed']} completed)")
        if len(reports) > 5:
            click.echo(f"    ... and {len(reports) - 5} more")
        click.echo()

    click.echo("VERDICT")
    click.echo("-" * 40)
    click.echo(f"  {verdict(latest)}")
    click.echo()
