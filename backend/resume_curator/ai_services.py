"""
AI Services Module for Resume Curator
The four model-backed operations of the tailoring flow: initial questions,
clarifying/follow-up questions, suggestions and the final resume.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from . import prompts
from .config import (
    AIConfig, INITIAL_QUESTION_COUNT, QUESTION_MAX_TOKENS, SUGGESTION_MAX_TOKENS, load_ai_config,
)
from .errors import InvalidModelOutput
from .llm_gateway import LLMGateway
from .models import AIInteraction
from .normalizer import parse_questions, parse_suggestions
from .schemas import Answer, Question, Suggestion

logger = logging.getLogger(__name__)

MAX_CLARIFYING_PER_ANSWER = 2
MAX_FOLLOWUPS_PER_ROUND = 3
FREE_TEXT_TYPES = {"text", "textarea"}


class CuratorAIService:
    """Prompt -> gateway -> normalizer pipeline for each tailoring step"""

    def __init__(self, gateway: LLMGateway, db: Optional[Session] = None, conversation_id: Optional[str] = None):
        self.gateway = gateway
        self.db = db
        self.conversation_id = conversation_id

    async def generate_initial_questions(
        self, resume: str, job: str, count: int = INITIAL_QUESTION_COUNT
    ) -> List[Question]:
        prompt = prompts.initial_questions_prompt(resume, job, count)
        raw = await self._call_llm(prompt, QUESTION_MAX_TOKENS, "initial_questions")
        questions = parse_questions(raw)
        if len(questions) > count:
            logger.info("Model returned %d questions, keeping %d", len(questions), count)
        return questions[:count]

    async def generate_clarifying_questions(
        self,
        resume: str,
        job: str,
        answers: Iterable[Answer],
        question_text: Optional[str] = None,
        selected_answer: Optional[str] = None,
        questions: Optional[Iterable[Question]] = None,
    ) -> List[Question]:
        """Optional enrichment: never raises, returns [] on any failure.

        With ``question_text``/``selected_answer`` the follow-ups target that
        single answer and are limited to free-text questions; otherwise a
        generic follow-up round over all answers is requested.
        """
        try:
            if question_text and selected_answer:
                prompt = prompts.clarifying_questions_prompt(resume, job, question_text, selected_answer)
                raw = await self._call_llm(prompt, QUESTION_MAX_TOKENS, "clarifying_questions")
                found = [q for q in parse_questions(raw, strict=False) if q.type in FREE_TEXT_TYPES]
                return found[:MAX_CLARIFYING_PER_ANSWER]

            prompt = prompts.followup_questions_prompt(resume, job, list(answers), questions)
            raw = await self._call_llm(prompt, QUESTION_MAX_TOKENS, "followup_questions")
            return parse_questions(raw, strict=False)[:MAX_FOLLOWUPS_PER_ROUND]
        except Exception as e:
            logger.warning(f"Follow-up question generation failed, continuing without: {e}")
            return []

    async def generate_suggestions(
        self, resume: str, job: str, answers: Iterable[Answer], questions: Optional[Iterable[Question]] = None
    ) -> List[Suggestion]:
        prompt = prompts.suggestions_prompt(resume, job, list(answers), questions)
        raw = await self._call_llm(prompt, SUGGESTION_MAX_TOKENS, "suggestions")
        return parse_suggestions(raw)

    async def generate_final_resume(
        self,
        resume: str,
        job: str,
        accepted_suggestions: Iterable[Suggestion],
        answers: Iterable[Answer],
        questions: Optional[Iterable[Question]] = None,
    ) -> str:
        accepted = list(accepted_suggestions)
        prompt = prompts.final_resume_prompt(resume, job, accepted, list(answers), questions)
        logger.info("Generating resume with %d accepted suggestions", len(accepted))
        text = (await self._call_llm(prompt, self.gateway.resume_token_budget(), "final_resume")).strip()
        if not text:
            raise InvalidModelOutput("the model returned an empty resume")
        return text

    async def _call_llm(self, prompt: str, max_tokens: int, interaction_type: str) -> str:
        raw = await self.gateway.complete(prompt, max_tokens)
        self._store_ai_interaction(interaction_type, prompt, raw)
        return raw

    def _store_ai_interaction(self, interaction_type: str, prompt: str, response: str):
        """Store AI interaction for auditing; failures never break the call"""
        if self.db is None:
            return
        try:
            self.db.add(AIInteraction(
                conversation_id=self.conversation_id,
                interaction_type=interaction_type,
                provider=self.gateway.config.provider,
                model_used=self.gateway.model,
                prompt=prompt,
                response=response,
            ))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to store AI interaction: {e}")


def get_ai_service(
    db: Optional[Session] = None, config: Optional[AIConfig] = None, conversation_id: Optional[str] = None
) -> CuratorAIService:
    """Get AI service instance for the configured provider"""
    return CuratorAIService(LLMGateway(config or load_ai_config()), db=db, conversation_id=conversation_id)
