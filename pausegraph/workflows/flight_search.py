"""
Flight Search Workflow Implementations.

Two human-in-the-loop workflows built on the engine:

Flight selection (single question):
1. Retrieve candidate flights for the query
2. One candidate: select it and finish
3. Several: show them, pause for the user's choice, interpret it, finish

Flight refinement (loop):
1. Retrieve candidate flights for the query
2. Show them; if one (or none) is left, show the final flight and finish
3. Otherwise pause for a refinement, narrow the list and go back to 2

Collaborators (search index, interpreter) are passed into the factories and
captured by the node closures.
"""

from typing import Any, Callable, Dict, List, Literal, Optional, Tuple
import logging

from pausegraph.collaborators.interpret import Interpreter, validate_selection
from pausegraph.collaborators.search import SearchClient
from pausegraph.engine.errors import InvalidSelectionError
from pausegraph.engine.graph import Graph, START, END
from pausegraph.engine.interrupt import interrupt
from pausegraph.engine.state import Channel, Reducer, StateSchema


logger = logging.getLogger(__name__)


NO_FLIGHT_FOUND = "No flight found matching your selection."
CHOICE_QUESTION = "Which flight do you prefer?"
REFINE_QUESTION = (
    "Refine your search (e.g., 'I want flights to Japan', "
    "'Show me the cheapest', or select by number):"
)


def flight_state_schema() -> StateSchema:
    """Channels shared by both flight workflows."""
    return StateSchema([
        Channel("input", str, default=""),
        Channel("candidates", list, default=[]),
        Channel("options", list, default=[]),
        Channel("user_choice", str),
        Channel("selected", dict),
        Channel("final", str),
        Channel("notice", str),
        Channel("refinements", str, reducer=Reducer.APPEND),
    ])


# ============================================================
# Formatting
# ============================================================

def format_flight_option(index: int, metadata: Dict[str, Any]) -> str:
    """One line of the numbered option list shown to the user."""
    return (
        f"{index + 1}. {metadata.get('title')} - {metadata.get('airline')} | "
        f"{metadata.get('from_city')} -> {metadata.get('to_city')} "
        f"({metadata.get('country')}) | {metadata.get('airport_name')} "
        f"({metadata.get('airport_code')}) | ${metadata.get('price')} | "
        f"{metadata.get('time_approx')}"
    )


def format_flight_details(metadata: Dict[str, Any]) -> str:
    """Final answer text for a selected flight."""
    from_city = metadata.get("from_city") or ""
    from_code = from_city[:3].upper() if from_city else "N/A"
    return (
        f"Selected flight: {metadata.get('title')} - {metadata.get('airline')}\n"
        f"From: {from_city} ({from_code})\n"
        f"To: {metadata.get('to_city')} ({metadata.get('airport_code')})\n"
        f"Airport: {metadata.get('airport_name')}\n"
        f"Price: ${metadata.get('price')}\n"
        f"Duration: {metadata.get('time_approx')}\n"
        f"Date: {metadata.get('date')}"
    )


def select_candidates(
    interpreter: Interpreter,
    text: str,
    candidates: List[Dict[str, Any]]
) -> Tuple[List[int], Optional[str]]:
    """
    Work out which candidates the user meant.

    A bare number picks that position directly; anything else goes to the
    interpreter. When nothing valid comes back, fall back to the first
    candidate and return a notice saying so.

    Returns:
        (indices, notice) - notice is None when the input was understood
    """
    text = text.strip()
    if text.isdigit() and 1 <= int(text) <= len(candidates):
        return [int(text) - 1], None

    try:
        return validate_selection(interpreter.interpret(text, candidates), len(candidates)), None
    except InvalidSelectionError as e:
        logger.warning(f"Could not interpret '{text}': {e}. Defaulting to the first flight")
        return [0], f"Could not match '{text}' to a flight; defaulted to option 1."


# ============================================================
# Node Handlers
# ============================================================

def make_retrieve_node(search: SearchClient, limit: int) -> Callable:
    def retrieve_flights(state: Dict[str, Any]) -> Dict[str, Any]:
        """Retrieve candidate flights for the query in ``input``."""
        candidates = search.search(state.get("input") or "", limit)
        logger.info(f"Found {len(candidates)} different flights")
        return {"candidates": candidates}
    return retrieve_flights


def evaluate_results(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Auto-select when exactly one flight was found.

    Updates state with:
    - selected: dict - The only candidate
    - final: str - Answer text (also set when nothing was found)
    """
    candidates = state.get("candidates") or []
    if len(candidates) == 1:
        return {
            "selected": candidates[0],
            "final": format_flight_details(candidates[0].get("metadata", {})),
        }
    if not candidates:
        return {"final": NO_FLIGHT_FOUND}
    return None


def show_results(state: Dict[str, Any]) -> Dict[str, Any]:
    """Build the numbered option list for the current candidates."""
    candidates = state.get("candidates") or []
    options = [
        format_flight_option(i, c.get("metadata", {}))
        for i, c in enumerate(candidates)
    ]
    if options:
        logger.info("Available flights:\n" + "\n".join(options))
    return {"options": options}


def request_user_choice(state: Dict[str, Any]) -> None:
    """Pause until the user picks one of the shown flights."""
    interrupt(
        {"question": CHOICE_QUESTION, "options": state.get("options") or []},
        key="user_choice",
    )


def request_refinement(state: Dict[str, Any]) -> None:
    """Pause until the user refines the search or picks a flight."""
    interrupt(
        {"question": REFINE_QUESTION, "options": state.get("options") or []},
        key="user_choice",
    )


def make_disambiguate_node(interpreter: Interpreter) -> Callable:
    def disambiguate_and_answer(state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Turn the user's answer into one selected flight.

        Uses state:
        - candidates: List[dict]
        - user_choice: str

        Updates state with:
        - selected, final, and notice when the answer was not understood
        """
        candidates = state.get("candidates") or []
        indices, notice = select_candidates(
            interpreter, state.get("user_choice") or "", candidates
        )
        selected = candidates[indices[0]]
        update = {
            "selected": selected,
            "final": format_flight_details(selected.get("metadata", {})),
        }
        if notice:
            update["notice"] = notice
        return update
    return disambiguate_and_answer


def make_refine_node(interpreter: Interpreter) -> Callable:
    def refine_selection(state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Narrow the candidates to the ones matching the user's refinement.

        Updates state with:
        - candidates: the matching subset, in the interpreter's order
        - refinements: the user's text is appended
        """
        candidates = state.get("candidates") or []
        choice = state.get("user_choice") or ""
        indices, notice = select_candidates(interpreter, choice, candidates)
        narrowed = [candidates[i] for i in indices]
        logger.info(f"Filtered to {len(narrowed)} flight(s)")

        update = {"candidates": narrowed, "refinements": choice}
        if notice:
            update["notice"] = notice
        return update
    return refine_selection


def show_final_flight(state: Dict[str, Any]) -> Dict[str, Any]:
    """Produce the final answer from the single remaining flight."""
    candidates = state.get("candidates") or []
    if not candidates:
        logger.info(NO_FLIGHT_FOUND)
        return {"selected": None, "final": NO_FLIGHT_FOUND}
    flight = candidates[0]
    return {
        "selected": flight,
        "final": format_flight_details(flight.get("metadata", {})),
    }


# ============================================================
# Condition Functions
# ============================================================

def route_after_evaluation(state: Dict[str, Any]) -> Literal["complete", "multiple"]:
    """
    Routing condition after evaluate_results.

    Returns:
    - "complete" if an answer is already known (0 or 1 candidate)
    - "multiple" if the user has to choose
    """
    return "complete" if state.get("final") else "multiple"


def check_remaining(state: Dict[str, Any]) -> Literal["final", "continue"]:
    """Router: stop once the candidate list is down to one (or none)."""
    candidates = state.get("candidates") or []
    if len(candidates) <= 1:
        logger.info("Found unique flight")
        return "final"
    return "continue"


# ============================================================
# Workflow Factories
# ============================================================

def create_flight_selection_workflow(
    search: SearchClient,
    interpreter: Interpreter,
    limit: int = 5
) -> Graph:
    """
    Create the single-question flight selection workflow.

    Workflow flow:
    ```
    retrieve → evaluate ─┬─→ END (complete)
                         └─→ show → request_choice ⏸ → disambiguate → END
    ```

    Args:
        search: Retrieval collaborator
        interpreter: Interpretation collaborator
        limit: Maximum candidates to retrieve

    Returns:
        Configured Graph instance
    """
    graph = Graph(
        name="flight-selection",
        description=(
            "Retrieves flights for a query; when more than one matches, asks "
            "the user to choose and interprets the answer."
        ),
        state_schema=flight_state_schema(),
    )

    graph.add_node("retrieve_flights", make_retrieve_node(search, limit))
    graph.add_node("evaluate_results", evaluate_results)
    graph.add_node("show_results", show_results)
    graph.add_node("request_user_choice", request_user_choice)
    graph.add_node("disambiguate_and_answer", make_disambiguate_node(interpreter))

    graph.add_edge(START, "retrieve_flights")
    graph.add_edge("retrieve_flights", "evaluate_results")
    graph.add_conditional_edge(
        "evaluate_results",
        route_after_evaluation,
        {"complete": END, "multiple": "show_results"},
    )
    graph.add_edge("show_results", "request_user_choice")
    graph.add_edge("request_user_choice", "disambiguate_and_answer")
    graph.add_edge("disambiguate_and_answer", END)

    return graph.compile()


def create_flight_refinement_workflow(
    search: SearchClient,
    interpreter: Interpreter,
    limit: int = 10
) -> Graph:
    """
    Create the looping flight refinement workflow.

    Workflow flow:
    ```
    initialize → show_flights → check_remaining ─┬─→ show_final_flight → END
                      ↑                          │
                      └── refine ← request ⏸ ←──┘ (continue)
    ```

    Args:
        search: Retrieval collaborator
        interpreter: Interpretation collaborator
        limit: Maximum candidates to retrieve

    Returns:
        Configured Graph instance
    """
    graph = Graph(
        name="flight-refinement",
        description=(
            "Retrieves flights for a query and keeps asking the user to refine "
            "the list until a single flight remains."
        ),
        state_schema=flight_state_schema(),
    )

    graph.add_node("initialize", make_retrieve_node(search, limit))
    graph.add_node("show_flights", show_results)
    graph.add_node("request_refinement", request_refinement)
    graph.add_node("refine_selection", make_refine_node(interpreter))
    graph.add_node("show_final_flight", show_final_flight)
    graph.add_router(
        "check_remaining",
        check_remaining,
        {"final": "show_final_flight", "continue": "request_refinement"},
    )

    graph.add_edge(START, "initialize")
    graph.add_edge("initialize", "show_flights")
    graph.add_edge("show_flights", "check_remaining")
    graph.add_edge("request_refinement", "refine_selection")
    graph.add_edge("refine_selection", "show_flights")
    graph.add_edge("show_final_flight", END)

    return graph.compile()


# ============================================================
# Example Usage
# ============================================================

async def run_flight_search_demo(
    question: str = "Flights to Asia",
    prompt: Callable[[str], str] = input,
    refine: bool = True
):
    """
    Demo function running a flight workflow in the terminal.

    Usage:
        import asyncio
        from pausegraph.workflows.flight_search import run_flight_search_demo
        asyncio.run(run_flight_search_demo())
    """
    from pausegraph.collaborators import FlightIndex, KeywordInterpreter
    from pausegraph.engine.executor import Executor
    from pausegraph.engine.interrupt import Command
    from pausegraph.storage.memory import MemoryCheckpointStore

    index = FlightIndex.from_json()
    interpreter = KeywordInterpreter()
    if refine:
        workflow = create_flight_refinement_workflow(index, interpreter)
    else:
        workflow = create_flight_selection_workflow(index, interpreter)

    executor = Executor(workflow, MemoryCheckpointStore())
    session_id = "demo-session"

    print(f"Searching: \"{question}\"\n")
    result = await executor.invoke({"input": question}, session_id)

    while result.suspended:
        payload = result.interrupt or {}
        print("\n".join(payload.get("options", [])))
        answer = prompt(f"\n{payload.get('question', '')} ").strip()
        result = await executor.resume(Command(
            session_id=session_id, value=answer, interrupt_id=result.interrupt_id
        ))

    print(f"\nFinal result:\n{result.state.get('final')}")
    if result.state.get("notice"):
        print(f"\nNote: {result.state['notice']}")
    return result


if __name__ == "__main__":
    import asyncio
    asyncio.run(run_flight_search_demo())
