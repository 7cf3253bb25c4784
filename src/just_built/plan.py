"""Ordered collection of steps produced for one user request."""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from just_built.step import Step, StepId, create_step, step_from_dict


class DuplicateIdError(ValueError):
    """Raised when a step id is already present in the plan."""
    pass


class NotFoundError(ValueError):
    """Raised when a step id does not exist in the plan."""
    pass


@dataclass
class Plan:
    steps: List[Step] = field(default_factory=list)
    request: str = ""
    model: Optional[str] = None

    def __len__(self) -> int:
        return len(self.steps)

    def __contains__(self, step_id) -> bool:
        return any(step.id == step_id for step in self.steps)

    def get_step(self, step_id: StepId) -> Step:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise NotFoundError(f"Step not found: {step_id}")

    def add_step(self, step: Step) -> Step:
        if step.id in self:
            raise DuplicateIdError(f"Step id already in plan: {step.id}")
        self.steps.append(step)
        return step

    def new_step(
        self,
        title: str,
        description: str,
        dependencies: Iterable[StepId] = (),
    ) -> Step:
        """Create a step with the next free id and append it."""
        return self.add_step(create_step(self.next_id(), title, description, dependencies))

    def edit_step(
        self,
        step_id: StepId,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Step:
        """Change title and/or description. Status, dependencies and result are untouched."""
        step = self.get_step(step_id)
        if title is not None:
            step.title = title
        if description is not None:
            step.description = description
        return step

    def remove_step(self, step_id: StepId) -> Step:
        """
        Remove a step from the plan.

        Other steps that list step_id as a dependency keep the dangling id;
        they will report it as unmet from then on.
        """
        step = self.get_step(step_id)
        self.steps.remove(step)
        return step

    def next_id(self) -> int:
        """
        max(existing integer ids) + 1, or 1 if there are none.

        Recomputed every call, so removing every step resets it to 1.
        """
        int_ids = [s.id for s in self.steps if isinstance(s.id, int) and not isinstance(s.id, bool)]
        return max(int_ids, default=0) + 1

    def completed_ids(self) -> Set[StepId]:
        return {step.id for step in self.steps if step.is_completed}

    @property
    def completed_count(self) -> int:
        return sum(1 for step in self.steps if step.is_completed)

    @property
    def progress_percent(self) -> float:
        if not self.steps:
            return 0.0
        return self.completed_count / len(self.steps) * 100

    def context(self) -> str:
        """Plan context handed to the step producer: the request plus numbered titles."""
        lines = []
        if self.request:
            lines.append(f"Request: {self.request}")
        lines.append("Plan:")
        for step in self.steps:
            lines.append(f"  {step.id}. {step.title}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "request": self.request,
            "model": self.model,
            "steps": [step.to_dict() for step in self.steps],
        }


def plan_from_dict(data: dict) -> Plan:
    """
    Build a Plan from its to_dict() form.

    Raises:
        ValueError: If 'steps' is missing or not a list.
        ValidationError: If a step definition is invalid.
        DuplicateIdError: If two steps share an id.
    """
    if not isinstance(data, dict):
        raise ValueError("Plan definition must be a mapping")
    if "steps" not in data:
        raise ValueError("Plan definition missing required field: steps")
    if not isinstance(data["steps"], list):
        raise ValueError("Plan field 'steps' must be a list")

    plan = Plan(request=data.get("request") or "", model=data.get("model"))
    for raw in data["steps"]:
        plan.add_step(step_from_dict(raw))
    return plan
