"""
Pure state transitions for a MathMaster session.

Every function takes the current SessionState plus event data and returns a
new SessionState. Nothing here performs I/O, so the same transitions are
used by the HTTP handlers, the solve workflow and the tests.

Transitions that carry a ``generation`` belong to a specific solve. When a
newer solve has started since, the event is stale and the state is returned
unchanged.
"""

import json
from typing import List, Optional

from pydantic import ValidationError

from errors import IncompleteSolutionError, MalformedPayloadError
from schemas import Solution
from state import PANELS, SessionState


def _is_stale(state: SessionState, generation: int) -> bool:
    return generation != state["generation"]


# ============================================================================
# PAYLOAD PARSING
# ============================================================================

def parse_solution(payload: str) -> Solution:
    """
    Parse the final accumulated stream text into a Solution.

    Raises MalformedPayloadError when the text is not JSON and
    IncompleteSolutionError when steps or final_answer are missing.
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError() from e

    if not isinstance(data, dict) or not data.get("steps") or not data.get("final_answer"):
        raise IncompleteSolutionError()

    try:
        return Solution.model_validate(data)
    except ValidationError as e:
        raise IncompleteSolutionError() from e


# ============================================================================
# SOLVE LIFECYCLE
# ============================================================================

def solve_started(state: SessionState, text: str, topic: str) -> SessionState:
    return {
        **state,
        "input": text,
        "topic": topic,
        "generation": state["generation"] + 1,
        "loading": True,
        "streaming_response": "",
        "error": None,
        "show_alternatives": False,
        "show_practice": False,
    }


def chunk_received(state: SessionState, generation: int, text: str) -> SessionState:
    # Chunks carry the full text so far, so they replace the buffer
    if _is_stale(state, generation):
        return state
    return {**state, "streaming_response": text}


def solution_committed(
    state: SessionState,
    generation: int,
    problem: str,
    solution: Solution,
    timestamp: str,
    history_limit: int = 5,
) -> SessionState:
    """
    Commit the solution for ``problem``, the text that was actually solved.

    The input field may have been edited while the stream was running, so
    history and the current solution are keyed to ``problem`` instead.
    """
    if _is_stale(state, generation):
        return state
    solution_dict = solution.model_dump()
    entry = {"input": problem, "solution": solution_dict, "timestamp": timestamp}
    history = (state["history"] + [entry])[-history_limit:]
    return {
        **state,
        "solution": solution_dict,
        "solution_input": problem,
        "history": history,
        "loading": False,
        "streaming_response": "",
        "error": None,
    }


def solve_failed(state: SessionState, generation: int, message: str) -> SessionState:
    """Report a failed solve. The previous solution stays in place."""
    if _is_stale(state, generation):
        return state
    return {
        **state,
        "loading": False,
        "streaming_response": "",
        "error": message,
    }


# ============================================================================
# ENRICHMENT
# ============================================================================

def alternatives_loaded(state: SessionState, generation: int, methods: List[dict]) -> SessionState:
    if _is_stale(state, generation):
        return state
    return {**state, "alternative_methods": methods, "show_alternatives": True}


def practice_loaded(state: SessionState, generation: int, problems: List[dict]) -> SessionState:
    if _is_stale(state, generation):
        return state
    return {**state, "practice_problems": problems, "show_practice": True}


def enrichment_failed(state: SessionState, generation: int, message: str) -> SessionState:
    # Prior enrichment content is kept as-is
    if _is_stale(state, generation):
        return state
    return {**state, "error": message}


# ============================================================================
# USER EVENTS
# ============================================================================

def error_reported(state: SessionState, message: str) -> SessionState:
    return {**state, "error": message}


def input_changed(state: SessionState, text: str) -> SessionState:
    return {**state, "input": text}


def provider_toggled(state: SessionState) -> SessionState:
    provider = "gpt" if state["provider"] == "gemini" else "gemini"
    return {**state, "provider": provider}


def panel_toggled(state: SessionState, panel: str) -> SessionState:
    if panel not in PANELS:
        raise ValueError(f"Unknown panel: {panel}")
    panels = {**state["panels"], panel: not state["panels"].get(panel, False)}
    return {**state, "panels": panels}


def image_uploaded(state: SessionState, preview_url: str) -> SessionState:
    return {**state, "preview_image": preview_url}


def cleared(state: SessionState) -> SessionState:
    return {
        **state,
        "input": "",
        "preview_image": None,
        "solution": None,
        "solution_input": "",
        "error": None,
    }


# ============================================================================
# SAVED SOLUTIONS
# ============================================================================

def saved_loaded(state: SessionState, items: List[dict]) -> SessionState:
    selected = state["selected_solution_id"]
    if selected is not None and not any(item["id"] == selected for item in items):
        selected = None
    return {**state, "saved_solutions": items, "selected_solution_id": selected}


def saved_selected(state: SessionState, solution_id: Optional[int]) -> SessionState:
    return {**state, "selected_solution_id": solution_id}


def notes_changed(state: SessionState, notes: str) -> SessionState:
    return {**state, "notes": notes}
