"""
Text helpers for problem input and solution display.

Topic tagging is cosmetic: it labels the problem for the UI and never
influences how the problem is solved.
"""

import re
from typing import Optional

DEFAULT_TOPIC = "General Mathematics"
TRIG_FUNCTIONS = ("sin", "cos", "tan")

_LATEX_NOISE = re.compile(r"[\\{}$]")


def detect_math_topic(text: str) -> str:
    """Tag a problem with a display topic. Checks run in priority order."""
    if "=" in text:
        return "Algebra"
    if any(fn in text for fn in TRIG_FUNCTIONS):
        return "Trigonometry"
    if "∫" in text or "d/dx" in text:
        return "Calculus"
    if "√" in text:
        return "Roots"
    if "%" in text:
        return "Percentages"
    if "matrix" in text or "[" in text:
        return "Matrices"
    return DEFAULT_TOPIC


def clean_equation(text: Optional[str]) -> str:
    """Strip LaTeX leftovers (backslashes, braces, dollar signs) for display."""
    if not text:
        return ""
    return _LATEX_NOISE.sub("", text)


def is_image_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.startswith("image/")


def build_share_text(problem: str, final_answer: str, url: str) -> str:
    return f"Problem: {problem}\nSolution: {final_answer}\nSee more at {url}"
