"""
Pydantic schemas for solutions, enrichment content and persisted records.

Model payloads are validated against these before anything reaches
session state.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# SOLUTION
# ============================================================================

class SolutionStep(BaseModel):
    """Single step in a worked solution."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    explanation: str
    equation: str = ""


class GraphPoint(BaseModel):
    x: float
    y: float


class GraphData(BaseModel):
    type: str
    points: List[GraphPoint] = Field(default_factory=list)


class Solution(BaseModel):
    """Complete step-by-step solution returned by the solving model."""
    # Models sometimes answer with a bare number, e.g. "final_answer": 4
    model_config = ConfigDict(coerce_numbers_to_str=True)

    steps: List[SolutionStep]
    final_answer: str
    difficulty_level: Optional[str] = None
    tips: List[str] = Field(default_factory=list)
    graph_data: Optional[GraphData] = None

    @field_validator("steps")
    @classmethod
    def require_steps(cls, v):
        if not v:
            raise ValueError("solution has no steps")
        return v

    @field_validator("final_answer")
    @classmethod
    def require_final_answer(cls, v):
        if not v.strip():
            raise ValueError("solution has no final answer")
        return v

    @field_validator("tips", mode="before")
    @classmethod
    def default_tips(cls, v):
        return [] if v is None else v


class HistoryEntry(BaseModel):
    input: str
    solution: Solution
    timestamp: str


# ============================================================================
# ENRICHMENT
# ============================================================================

class AlternativeMethod(BaseModel):
    """One alternative way of solving the current problem."""
    name: str
    steps: List[SolutionStep]
    final_answer: str


class AlternativeMethods(BaseModel):
    methods: List[AlternativeMethod]


class PracticeProblem(BaseModel):
    """A similar problem for the student to try."""
    problem: str
    difficulty: str
    solution: str


class PracticeProblems(BaseModel):
    problems: List[PracticeProblem]


# ============================================================================
# PERSISTENCE
# ============================================================================

class SavedSolution(BaseModel):
    id: int
    equation: str
    solution: Solution
    notes: str = ""
    is_favorite: bool = False
    created_at: str


class Preferences(BaseModel):
    """Display preferences stored under a single key."""
    theme: Literal["system", "light", "dark"] = "system"
    font_size: Literal["sm", "base", "lg"] = "base"
    high_contrast: bool = False
