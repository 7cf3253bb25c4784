"""A single unit of work in a development plan."""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Union

StepId = Union[int, str]

PENDING = "PENDING"
RUNNING = "RUNNING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"

STEP_STATUSES = (PENDING, RUNNING, COMPLETED, FAILED)


class ValidationError(ValueError):
    """Raised when a step cannot be constructed."""
    pass


def _is_valid_id(value) -> bool:
    # bool is an int subclass; True/False are not usable ids
    return isinstance(value, (int, str)) and not isinstance(value, bool)


@dataclass
class Step:
    id: StepId
    title: str
    description: str
    dependencies: FrozenSet[StepId] = field(default_factory=frozenset)
    status: str = PENDING  # PENDING | RUNNING | COMPLETED | FAILED
    result: Optional[str] = None
    error: Optional[str] = None
    estimated_time: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self.status in (COMPLETED, FAILED)

    def mark_running(self) -> None:
        self.status = RUNNING
        self.error = None

    def mark_completed(self, result: Optional[str]) -> None:
        self.status = COMPLETED
        self.result = result

    def mark_failed(self, reason: str) -> None:
        self.status = FAILED
        self.error = reason

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dependencies": sorted(self.dependencies, key=str),
            "status": self.status,
        }
        if self.estimated_time is not None:
            data["estimated_time"] = self.estimated_time
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


def create_step(
    id: StepId,
    title: str,
    description: str,
    dependencies: Iterable[StepId] = (),
    estimated_time: Optional[str] = None,
) -> Step:
    """
    Build a validated Step in PENDING status.

    Duplicate ids are the owning Plan's concern (see Plan.add_step).

    Raises:
        ValidationError: If the id or a dependency id is not an int/str,
            or if the step depends on itself.
    """
    if not _is_valid_id(id):
        raise ValidationError(f"Step id must be an int or str, got {id!r}")

    deps = frozenset(dependencies)
    bad = [d for d in deps if not _is_valid_id(d)]
    if bad:
        raise ValidationError(f"Step {id}: invalid dependency ids {bad!r}")
    if id in deps:
        raise ValidationError(f"Step {id} cannot depend on itself")

    return Step(
        id=id,
        title=title,
        description=description,
        dependencies=deps,
        estimated_time=estimated_time,
    )


def step_from_dict(data: dict) -> Step:
    """
    Rebuild a Step from its to_dict() form.

    Status, result and error are restored as stored; unknown statuses are
    rejected.
    """
    if "id" not in data:
        raise ValidationError("Step definition missing required field: id")

    step_id = data["id"]
    for name in ("title", "description"):
        value = data.get(name, "")
        if not isinstance(value, str):
            raise ValidationError(f"Step {step_id}: {name} must be a string, got {value!r}")

    dependencies = data.get("dependencies")
    if dependencies is None:
        dependencies = []
    if not isinstance(dependencies, list):
        raise ValidationError(f"Step {step_id}: dependencies must be a list")

    step = create_step(
        id=step_id,
        title=data.get("title", ""),
        description=data.get("description", ""),
        dependencies=dependencies,
        estimated_time=data.get("estimated_time"),
    )

    status = data.get("status", PENDING)
    if status not in STEP_STATUSES:
        raise ValidationError(
            f"Step {step.id}: unknown status '{status}'. Expected one of: {STEP_STATUSES}"
        )
    step.status = status
    step.result = data.get("result")
    step.error = data.get("error")
    return step
