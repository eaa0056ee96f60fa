"""
Session State Definition for MathMaster

This module defines the SessionState TypedDict that holds everything the UI
shows for one browser session. It is only ever changed by the pure
transitions in reducer.py; callers persist the returned document.
"""

from typing import TypedDict, List, Optional, Literal


Provider = Literal["gemini", "gpt"]

PANELS = ("history", "saved", "step_by_step", "tips", "graph")


class SessionState(TypedDict):
    """
    The state document for a single session.

    Solutions, history entries and enrichment items are stored as plain
    dicts (validated schema dumps) so the document serializes as JSON.
    """

    # --- Input ---
    input: str
    topic: str
    provider: Provider
    preview_image: Optional[str]

    # --- Solve lifecycle ---
    generation: int  # Bumped on every solve; stale results are dropped
    loading: bool
    streaming_response: str  # Full accumulated text of the in-flight stream
    solution: Optional[dict]
    solution_input: str  # Problem text the current solution answers
    error: Optional[str]
    history: List[dict]  # [{input, solution, timestamp}], most recent last

    # --- Enrichment ---
    alternative_methods: List[dict]
    show_alternatives: bool
    practice_problems: List[dict]
    show_practice: bool

    # --- Saved solutions (cached copy) ---
    saved_solutions: List[dict]
    selected_solution_id: Optional[int]
    notes: str

    # --- Display panels ---
    panels: dict  # {panel_name: bool}


def new_session_state(provider: Provider = "gemini") -> SessionState:
    return {
        "input": "",
        "topic": "",
        "provider": provider,
        "preview_image": None,
        "generation": 0,
        "loading": False,
        "streaming_response": "",
        "solution": None,
        "solution_input": "",
        "error": None,
        "history": [],
        "alternative_methods": [],
        "show_alternatives": False,
        "practice_problems": [],
        "show_practice": False,
        "saved_solutions": [],
        "selected_solution_id": None,
        "notes": "",
        "panels": {
            "history": False,
            "saved": False,
            "step_by_step": True,
            "tips": False,
            "graph": False,
        },
    }
