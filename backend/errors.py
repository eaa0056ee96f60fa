"""
Error taxonomy for the solver service.

Each error carries the user-facing message that ends up in the session's
error slot. Details for operators go to the log, not to the user.
"""

from typing import Optional


class MathSolverError(Exception):
    """Base class for every failure the user can be told about."""

    message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class EmptyInputError(MathSolverError):
    message = "Please enter an equation to solve."


class MalformedPayloadError(MathSolverError):
    message = "Received invalid response format. Please try again."


class IncompleteSolutionError(MathSolverError):
    message = "Received incomplete solution data. Please try again."


class TransportError(MathSolverError):
    message = "Sorry, there was a problem solving your equation. Please try again in a moment."


class UploadError(MathSolverError):
    message = "Failed to process the image. Please try again."


class EnrichmentError(MathSolverError):
    message = "Failed to generate additional content"


class AlternativeMethodsError(EnrichmentError):
    message = "Failed to generate alternative methods"


class PracticeProblemsError(EnrichmentError):
    message = "Failed to generate practice problems"


class PersistenceError(MathSolverError):
    message = "Failed to load saved solutions"


class SavedSolutionNotFound(PersistenceError):
    message = "Saved solution not found"


class SessionNotFound(MathSolverError):
    message = "Session not found"
