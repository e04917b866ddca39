import os
import sys
from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure backend package is importable
backend_root = Path(__file__).resolve().parents[1]
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

# Keep the import-time engine off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

from resume_curator.schemas import Answer, Question, Suggestion  # noqa: E402


class ScriptedGateway:
    """Stands in for LLMGateway: replays canned replies in call order."""

    def __init__(self, replies: List, provider: str = "openai", model: str = "gpt-test"):
        self.replies = list(replies)
        self.prompts: List[str] = []
        self.budgets: List[int] = []
        self.model = model
        self.config = type("Cfg", (), {"provider": provider})()

    def resume_token_budget(self) -> int:
        return 8000

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.prompts.append(prompt)
        self.budgets.append(max_tokens)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeAIService:
    """Deterministic stand-in for CuratorAIService used by state machine and API tests."""

    def __init__(self, initial=None, clarifying=None, followups=None, suggestions=None, resume="Curated resume"):
        self.initial = initial if initial is not None else [
            Question(id=f"q{i}", question=f"Initial question {i}?", type="multiple-choice",
                     options=["Yes", "Some", "No direct experience"])
            for i in (1, 2, 3)
        ]
        # clarifying: dict question_text -> list of questions
        self.clarifying = clarifying or {}
        # followups: list of rounds, each a list of questions
        self.followups = list(followups or [])
        self.suggestions = suggestions if suggestions is not None else [
            Suggestion(id="s1", type="add", section="Skills", suggested_text="Kubernetes", reason="Job asks for it"),
            Suggestion(id="s2", type="reword", section="Summary", reason="Match the role title"),
            Suggestion(id="s3", type="remove", section="Hobbies", reason="Not relevant"),
        ]
        self.resume = resume
        self.calls: List[tuple] = []
        self.final_args = None
        self.hook = None  # optional callable run mid-call, to simulate navigation

    async def _maybe_hook(self):
        if self.hook is not None:
            hook, self.hook = self.hook, None
            hook()

    async def generate_initial_questions(self, resume, job, count=3):
        self.calls.append(("initial",))
        await self._maybe_hook()
        return list(self.initial)

    async def generate_clarifying_questions(self, resume, job, answers, question_text=None,
                                            selected_answer=None, questions=None):
        if question_text:
            self.calls.append(("clarifying", question_text, selected_answer))
            await self._maybe_hook()
            return list(self.clarifying.get(question_text, []))
        self.calls.append(("followup",))
        await self._maybe_hook()
        return self.followups.pop(0) if self.followups else []

    async def generate_suggestions(self, resume, job, answers, questions=None):
        self.calls.append(("suggestions", [a.question_id for a in answers]))
        await self._maybe_hook()
        return list(self.suggestions)

    async def generate_final_resume(self, resume, job, accepted_suggestions, answers, questions=None):
        self.calls.append(("final",))
        self.final_args = (list(accepted_suggestions), list(answers))
        await self._maybe_hook()
        return self.resume


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Provide a FastAPI TestClient with an isolated SQLite DB."""
    monkeypatch.setenv("CORS_ORIGINS", "*")

    # Avoid accidental usage of real API keys during tests
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("AI_API_KEY", "")
    monkeypatch.setenv("AI_PROVIDER", "openai")

    from resume_curator import db  # type: ignore
    import resume_curator.models  # noqa: F401

    test_db_path = tmp_path / "test.db"
    engine = create_engine(
        f"sqlite:///{test_db_path}", connect_args={"check_same_thread": False}
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db.Base.metadata.create_all(bind=engine)

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    from resume_curator.main import app  # type: ignore

    app.dependency_overrides[db.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def answers(*pairs) -> List[Answer]:
    return [Answer(question_id=q, answer=a) for q, a in pairs]
