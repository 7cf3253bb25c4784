"""LangGraph wrapper for a single step run - trace harness only.

This wraps Executor's phases in a LangGraph StateGraph so that locating,
gating and producing are visible as separate nodes in LangGraph Studio.

NO new orchestration logic. Same semantics as Executor.run_step.
"""

from typing import Any, Optional
from typing_extensions import TypedDict

from langgraph.graph import StateGraph, END

from just_built.executor import Executor, StepOutcome
from just_built.plan import Plan
from just_built.producer import StepProducer
from just_built.reporter import ProgressReporter


class StepGraphState(TypedDict):
    """State for the step graph."""
    step_id: Any
    # Plan and executor references (passed through state)
    plan: Any
    executor: Any
    outcome: Optional[StepOutcome]


# --- Graph Nodes ---

def node_locate(state: StepGraphState) -> dict:
    """Look the step up; raises NotFoundError like run_step does."""
    state["plan"].get_step(state["step_id"])
    return {"outcome": None}


def node_gate(state: StepGraphState) -> dict:
    """Stop here if the step is already completed or blocked."""
    plan = state["plan"]
    step = plan.get_step(state["step_id"])
    return {"outcome": state["executor"].gate(plan, step)}


def node_produce(state: StepGraphState) -> dict:
    """Run the producer and record the terminal status."""
    plan = state["plan"]
    step = plan.get_step(state["step_id"])
    return {"outcome": state["executor"].produce(plan, step)}


# --- Conditional Edges ---

def should_produce(state: StepGraphState) -> str:
    if state["outcome"] is None:
        return "produce"
    return "end"


# --- Graph Builder ---

def build_step_graph() -> StateGraph:
    """
    Build the step graph.

    Flow:
        locate -> gate -> (blocked or done?) -> end
                       -> (clear?) -> produce -> end
    """
    graph = StateGraph(StepGraphState)

    graph.add_node("locate", node_locate)
    graph.add_node("gate", node_gate)
    graph.add_node("produce", node_produce)

    graph.set_entry_point("locate")

    graph.add_edge("locate", "gate")
    graph.add_conditional_edges(
        "gate",
        should_produce,
        {
            "end": END,
            "produce": "produce",
        }
    )
    graph.add_edge("produce", END)

    return graph


def run_step_graph(
    plan: Plan,
    step_id,
    producer: StepProducer,
    reporter: Optional[ProgressReporter] = None,
    executor: Optional[Executor] = None,
) -> StepOutcome:
    """
    Run one step through the graph and return its outcome.

    This is the traced equivalent of Executor.run_step(). Pass executor to
    reuse an existing one (its producer and reporter win); it reports
    executing for the whole graph run.
    """
    compiled = build_step_graph().compile()
    if executor is None:
        executor = Executor(producer, reporter=reporter)

    initial_state: StepGraphState = {
        "step_id": step_id,
        "plan": plan,
        "executor": executor,
        "outcome": None,
    }

    with executor.running():
        final_state = compiled.invoke(initial_state)
    return final_state["outcome"]


# Pre-compiled graph for Studio discovery
step_graph = build_step_graph().compile()
