"""Planner interface and the template planner."""

from abc import ABC, abstractmethod

from just_built.constants import get_model
from just_built.plan import Plan
from just_built.step import create_step


class PlannerUnavailable(Exception):
    """Raised when the requested planning model cannot be used."""
    pass


class Planner(ABC):
    """Turns a free-text request into an initial ordered plan."""

    @abstractmethod
    def generate(self, request_text: str, model_id: str) -> Plan:
        pass


# (title, description, estimated_time)
DEFAULT_PLAN_STEPS = [
    ("Setup project structure", "Create basic folder structure and initialize project files", "5 minutes"),
    ("Create HTML layout", "Implement the basic HTML structure for the application", "10 minutes"),
    ("Add CSS styling", "Style the application with CSS to match design requirements", "15 minutes"),
    ("Implement core functionality", "Add JavaScript code for the main application features", "30 minutes"),
    ("Test and debug", "Test the application and fix any issues", "20 minutes"),
]


class TemplatePlanner(Planner):
    """
    Returns the standard five-step web project plan for any request.

    Each step depends on the one before it, so run-all executes them as a
    chain and a failure stops everything downstream of it.
    """

    def generate(self, request_text: str, model_id: str) -> Plan:
        if not request_text or not request_text.strip():
            raise ValueError("Please describe your project first")

        model = get_model(model_id)
        if model is None or not model.get("available", False):
            raise PlannerUnavailable(f"Model not available: {model_id}")

        plan = Plan(request=request_text.strip(), model=model_id)
        for index, (title, description, estimated_time) in enumerate(DEFAULT_PLAN_STEPS, start=1):
            deps = (index - 1,) if index > 1 else ()
            plan.add_step(create_step(
                id=index,
                title=title,
                description=description,
                dependencies=deps,
                estimated_time=estimated_time,
            ))
        return plan
