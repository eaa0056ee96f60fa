"""
Prompts and JSON schemas for the structured completions.

Schemas are plain JSON Schema dicts (no $ref) so both providers accept them
as-is for structured output.
"""

_STEPS_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "explanation": {"type": "string"},
            "equation": {"type": "string"},
        },
        "required": ["explanation", "equation"],
    },
}

MATH_SOLUTION_SCHEMA = {
    "name": "math_solution",
    "schema": {
        "type": "object",
        "properties": {
            "steps": _STEPS_SCHEMA,
            "final_answer": {"type": "string"},
            "difficulty_level": {"type": "string"},
            "tips": {"type": "array", "items": {"type": "string"}},
            "graph_data": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "points": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "x": {"type": "number"},
                                "y": {"type": "number"},
                            },
                            "required": ["x", "y"],
                        },
                    },
                },
                "required": ["type", "points"],
            },
        },
        "required": ["steps", "final_answer"],
    },
}

ALTERNATIVE_METHODS_SCHEMA = {
    "name": "alternative_methods",
    "schema": {
        "type": "object",
        "properties": {
            "methods": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "steps": _STEPS_SCHEMA,
                        "final_answer": {"type": "string"},
                    },
                    "required": ["name", "steps", "final_answer"],
                },
            },
        },
        "required": ["methods"],
    },
}

PRACTICE_PROBLEMS_SCHEMA = {
    "name": "practice_problems",
    "schema": {
        "type": "object",
        "properties": {
            "problems": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "problem": {"type": "string"},
                        "difficulty": {"type": "string"},
                        "solution": {"type": "string"},
                    },
                    "required": ["problem", "difficulty", "solution"],
                },
            },
        },
        "required": ["problems"],
    },
}


def solve_prompt(problem: str) -> str:
    return (
        "Solve this mathematical problem and show all steps. "
        "Format all mathematical expressions properly without LaTeX or markdown symbols. "
        "Make explanations clear and detailed. "
        "Respond only with a JSON object with \"steps\" (each with \"explanation\" and \"equation\"), "
        "\"final_answer\", \"difficulty_level\", \"tips\" and optionally \"graph_data\". "
        f"Problem: {problem}"
    )


def alternative_methods_prompt(problem: str) -> str:
    return (
        f"Show two alternative methods to solve this math problem: {problem}. "
        "Explain each method step by step. "
        "Respond only with a JSON object with a \"methods\" list; each method has "
        "\"name\", \"steps\" (each with \"explanation\" and \"equation\") and \"final_answer\"."
    )


def practice_problems_prompt(problem: str) -> str:
    return (
        f"Generate 3 similar practice problems based on this math problem: {problem}. "
        "Make them slightly different in difficulty. "
        "Respond only with a JSON object with a \"problems\" list; each problem has "
        "\"problem\", \"difficulty\" (Easy, Medium or Hard) and \"solution\"."
    )


IMAGE_TRANSCRIPTION_PROMPT = (
    "Read this mathematical problem and express it as a text equation. "
    "Only return the equation, nothing else. "
    "Make sure to properly format fractions, exponents, and special mathematical symbols."
)
