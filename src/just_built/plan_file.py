"""Read and write plan files (YAML or JSON)."""

import json
from pathlib import Path

import yaml

from just_built.plan import Plan, plan_from_dict

PLAN_SUFFIXES = (".yaml", ".yml", ".json")


def _check_suffix(path: Path) -> None:
    if path.suffix not in PLAN_SUFFIXES:
        raise ValueError(f"Unsupported file type: {path.suffix}. Use .yaml, .yml, or .json")


def load_plan(plan_file: Path) -> Plan:
    """
    Load a plan from YAML or JSON.

    Required fields:
        - steps: list of step mappings, each with at least an id

    Optional fields:
        - request: str, the text the plan was generated from
        - model: str, the model id that generated it
    """
    plan_file = Path(plan_file)
    _check_suffix(plan_file)
    content = plan_file.read_text()

    if plan_file.suffix == ".json":
        data = json.loads(content)
    else:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as ye:
            raise ValueError(f"Invalid YAML in {plan_file}: {ye}")

    return plan_from_dict(data)


def save_plan(plan: Plan, plan_file: Path) -> Path:
    """Write the plan back in the format its suffix names."""
    plan_file = Path(plan_file)
    _check_suffix(plan_file)
    plan_file.parent.mkdir(parents=True, exist_ok=True)

    data = plan.to_dict()
    if plan_file.suffix == ".json":
        plan_file.write_text(json.dumps(data, indent=2))
    else:
        plan_file.write_text(
            yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
        )

    return plan_file
