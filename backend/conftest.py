"""
Shared fixtures: an in-memory Redis and scripted chat models.
"""

import json
from typing import Any, Iterator, List, Optional

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult

from saved_solutions import SavedSolutionStore
from session_store import SessionStore
from solver import MathSolver, content_text
from uploads import ImageUploader
from workflow import SolveWorkflow


SOLUTION_JSON = json.dumps({
    "steps": [
        {"explanation": "Subtract 5 from both sides", "equation": "2x = 8"},
        {"explanation": "Divide both sides by 2", "equation": "x = 4"},
    ],
    "final_answer": "x = 4",
    "difficulty_level": "Easy",
    "tips": ["Undo addition before multiplication"],
})

ALTERNATIVES_JSON = json.dumps({
    "methods": [
        {
            "name": "Guess and check",
            "steps": [{"explanation": "Try x = 4", "equation": "2(4) + 5 = 13"}],
            "final_answer": "x = 4",
        },
        {
            "name": "Balance method",
            "steps": [{"explanation": "Remove 5 from each pan", "equation": "2x = 8"}],
            "final_answer": "x = 4",
        },
    ]
})

PRACTICE_JSON = json.dumps({
    "problems": [
        {"problem": "3x + 2 = 11", "difficulty": "Easy", "solution": "x = 3"},
        {"problem": "5x - 7 = 18", "difficulty": "Medium", "solution": "x = 5"},
        {"problem": "4(x + 1) = 2x + 14", "difficulty": "Hard", "solution": "x = 5"},
    ]
})


class RoutedFakeChatModel(BaseChatModel):
    """
    Chat model that answers by keyword match on the last message.

    A route value that is an Exception is raised instead of returned.
    Streaming splits the answer into fixed-size pieces.
    """

    routes: dict = {}
    chunk_size: int = 7
    calls: List[str] = []

    @property
    def _llm_type(self) -> str:
        return "routed-fake"

    def _pick(self, messages: List[BaseMessage]) -> str:
        text = content_text(messages[-1].content)
        self.calls.append(text)
        for keyword, answer in self.routes.items():
            if keyword in text:
                if isinstance(answer, Exception):
                    raise answer
                return answer
        raise ValueError(f"No scripted answer for: {text[:60]}")

    def _generate(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]] = None,
        run_manager: Any = None,
        **kwargs: Any,
    ) -> ChatResult:
        message = AIMessage(content=self._pick(messages))
        return ChatResult(generations=[ChatGeneration(message=message)])

    def _stream(
        self,
        messages: List[BaseMessage],
        stop: Optional[List[str]] = None,
        run_manager: Any = None,
        **kwargs: Any,
    ) -> Iterator[ChatGenerationChunk]:
        answer = self._pick(messages)
        for i in range(0, len(answer), self.chunk_size):
            yield ChatGenerationChunk(message=AIMessageChunk(content=answer[i:i + self.chunk_size]))


def default_routes() -> dict:
    return {
        "Solve this mathematical problem": SOLUTION_JSON,
        "alternative methods": ALTERNATIVES_JSON,
        "practice problems": PRACTICE_JSON,
        "Read this mathematical problem": "2x + 5 = 13",
    }


@pytest.fixture
def routes() -> dict:
    return default_routes()


@pytest.fixture
def chat_model(routes) -> RoutedFakeChatModel:
    return RoutedFakeChatModel(routes=routes, calls=[])


@pytest.fixture
def solver(chat_model) -> MathSolver:
    return MathSolver(
        model_factory=lambda provider, **kwargs: chat_model,
        vision_factory=lambda: chat_model,
        enrichment_provider="gemini"
    )


@pytest.fixture
def redis_client():
    return FakeAsyncRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture
def sessions(redis_client) -> SessionStore:
    return SessionStore(redis_client, ttl_seconds=600)


@pytest.fixture
def saved_store(redis_client) -> SavedSolutionStore:
    return SavedSolutionStore(redis_client)


@pytest.fixture
def workflow(sessions, solver, saved_store, tmp_path) -> SolveWorkflow:
    return SolveWorkflow(
        sessions=sessions,
        solver=solver,
        saved=saved_store,
        uploader=ImageUploader(str(tmp_path / "uploads"), max_bytes=1024 * 1024),
        history_limit=5,
        clock=lambda: "01/02/2026, 10:00:00 AM"
    )


async def collect(events) -> list:
    return [event async for event in events]
