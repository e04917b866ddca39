"""
Conversation state machine for the tailoring wizard.

Phases run strictly forward (upload -> job-description -> questions ->
suggestions -> generate) with a single "back" edge to the previous phase.
Inside ``questions`` the machine first asks the initial questions, then a
bounded number of follow-up rounds (one clarifying round per answered
initial question, then generic follow-ups) before moving on.

Every phase change and every user edit (answers, accepted suggestions)
bumps ``state.revision``. Model calls capture the revision before awaiting
and drop their result if it changed meanwhile, which is how a user
navigating away "cancels" an in-flight call.
"""
import logging
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import Field

from .ai_services import CuratorAIService
from .config import INITIAL_QUESTION_COUNT, MAX_FOLLOWUP_ROUNDS
from .errors import ConversationError, InvalidModelOutput
from .schemas import Answer, CamelModel, HistoryEntry, JobDescription, Question, Resume, Suggestion

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    UPLOAD = "upload"
    JOB_DESCRIPTION = "job-description"
    QUESTIONS = "questions"
    SUGGESTIONS = "suggestions"
    GENERATE = "generate"


PHASE_ORDER = list(Phase)


class QuestionStage(str, Enum):
    INITIAL = "initial"
    CLARIFYING = "clarifying"


class ConversationState(CamelModel):
    phase: Phase = Phase.UPLOAD
    resume: Optional[Resume] = None
    job_description: Optional[JobDescription] = Field(default=None, alias="jobDescription")
    questions: List[Question] = []
    answers: List[Answer] = []
    suggestions: List[Suggestion] = []
    accepted_suggestion_ids: List[str] = Field(default=[], alias="acceptedSuggestionIds")
    history: List[HistoryEntry] = []
    stage: QuestionStage = QuestionStage.INITIAL
    initial_question_ids: List[str] = Field(default=[], alias="initialQuestionIds")
    followup_rounds: int = Field(default=0, alias="followupRounds")
    suggestions_basis: Optional[List[Answer]] = Field(default=None, alias="suggestionsBasis")
    final_resume: Optional[str] = Field(default=None, alias="finalResume")
    revision: int = 0


class Conversation:
    """Drives one session's ConversationState through the tailoring phases"""

    def __init__(
        self,
        state: Optional[ConversationState] = None,
        *,
        max_followup_rounds: int = MAX_FOLLOWUP_ROUNDS,
        initial_question_count: int = INITIAL_QUESTION_COUNT,
        generic_followups: bool = True,
    ):
        self.state = state or ConversationState()
        self.max_followup_rounds = max_followup_rounds
        self.initial_question_count = initial_question_count
        self.generic_followups = generic_followups

    # ----- helpers -----

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def _require(self, *phases: Phase, action: str) -> None:
        if self.state.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise ConversationError(
                f"Cannot {action} during '{self.state.phase.value}'",
                details=f"'{action}' is only allowed in: {allowed}",
            )

    def _goto(self, phase: Phase) -> None:
        logger.info("Conversation phase %s -> %s", self.state.phase.value, phase.value)
        self.state.phase = phase
        self.state.revision += 1

    def _touch(self) -> None:
        self.state.revision += 1

    def _stale(self, revision: int, action: str) -> bool:
        if self.state.revision != revision:
            logger.info("Discarding %s result: conversation moved on", action)
            return True
        return False

    def _inputs(self):
        return self.state.resume.text, self.state.job_description.text

    def _say(self, role: str, content: str) -> None:
        self.state.history.append(HistoryEntry(role=role, content=content))

    def _add_questions(self, new: Iterable[Question]) -> List[Question]:
        # Models reuse ids like "q1" across calls; answers are keyed by id
        taken = {q.id for q in self.state.questions}
        added: List[Question] = []
        for q in new:
            qid, n = q.id, 2
            while qid in taken:
                qid = f"{q.id}-{n}"
                n += 1
            if qid != q.id:
                q = q.model_copy(update={"id": qid})
            taken.add(qid)
            added.append(q)
            self._say("assistant", q.question)
        self.state.questions.extend(added)
        return added

    def answer_for(self, question_id: str) -> Optional[Answer]:
        return next((a for a in self.state.answers if a.question_id == question_id), None)

    def pending_questions(self) -> List[Question]:
        answered = {a.question_id for a in self.state.answers}
        return [q for q in self.state.questions if q.id not in answered]

    @property
    def current_question(self) -> Optional[Question]:
        pending = self.pending_questions()
        return pending[0] if pending else None

    def accepted_suggestions(self) -> List[Suggestion]:
        accepted = set(self.state.accepted_suggestion_ids)
        return [s for s in self.state.suggestions if s.id in accepted]

    # ----- upload / job description -----

    def attach_resume(self, resume: Resume) -> None:
        self._require(Phase.UPLOAD, action="attach a resume")
        if self.state.resume is not None and self.state.resume.id != resume.id:
            self._clear_from(Phase.QUESTIONS)
        self.state.resume = resume
        self._goto(Phase.JOB_DESCRIPTION)

    def attach_job_description(self, job: JobDescription) -> None:
        self._require(Phase.JOB_DESCRIPTION, action="attach a job description")
        old = self.state.job_description
        if old is not None and (old.url, old.text) != (job.url, job.text):
            self._clear_from(Phase.QUESTIONS)
        self.state.job_description = job
        self._goto(Phase.QUESTIONS)

    def _clear_from(self, phase: Phase) -> None:
        """Drop data derived from inputs that are being replaced"""
        s = self.state
        if phase == Phase.QUESTIONS:
            s.questions, s.answers, s.initial_question_ids = [], [], []
            s.stage, s.followup_rounds = QuestionStage.INITIAL, 0
        s.suggestions, s.accepted_suggestion_ids, s.suggestions_basis = [], [], None
        s.final_resume = None

    # ----- questions -----

    async def start_questions(self, ai: CuratorAIService) -> List[Question]:
        """Load the initial questions (once; revisiting reuses them)."""
        self._require(Phase.QUESTIONS, action="load questions")
        if self.state.questions:
            return self.state.questions

        revision = self.state.revision
        resume, job = self._inputs()
        questions = await ai.generate_initial_questions(resume, job, self.initial_question_count)
        if self._stale(revision, "initial questions"):
            return []
        if not questions:
            raise InvalidModelOutput("No questions were generated. Please check your API key configuration.")

        added = self._add_questions(questions)
        self.state.initial_question_ids = [q.id for q in added]
        self.state.stage = QuestionStage.INITIAL
        self.state.followup_rounds = 0
        return added

    def answer(self, question_id: str, answer: str) -> Answer:
        """Record (or replace) the answer for one question."""
        self._require(Phase.QUESTIONS, action="answer a question")
        if not any(q.id == question_id for q in self.state.questions):
            raise ConversationError(f"Unknown question '{question_id}'")
        text = (answer or "").strip()
        if not text:
            raise ConversationError("Answer must not be empty")

        existing = self.answer_for(question_id)
        if existing is not None:
            existing.answer = text
        else:
            existing = Answer(question_id=question_id, answer=text)
            self.state.answers.append(existing)
        self._say("user", text)
        self._touch()
        return existing

    async def advance(self, ai: CuratorAIService) -> Phase:
        """Move past a fully answered batch of questions.

        Either adds another batch of follow-up questions or, when there is
        nothing more to ask or the round cap is hit, moves to suggestions.
        """
        self._require(Phase.QUESTIONS, action="continue")
        if not self.state.questions:
            raise ConversationError("Questions have not been loaded yet")
        if self.pending_questions():
            raise ConversationError(
                "Answer the remaining questions first",
                suggestion="Or skip straight to suggestions.",
            )

        if self.state.followup_rounds >= self.max_followup_rounds:
            logger.info("Follow-up round cap (%d) reached", self.max_followup_rounds)
            self._goto(Phase.SUGGESTIONS)
            return self.phase

        if self.state.stage == QuestionStage.INITIAL:
            found = await self._clarifying_round(ai)
        elif self.generic_followups:
            found = await self._generic_round(ai)
        else:
            found = []

        if found is None:
            return self.phase
        if not found:
            logger.info("No follow-up questions needed")
            self._goto(Phase.SUGGESTIONS)
            return self.phase

        self.state.followup_rounds += 1
        self.state.stage = QuestionStage.CLARIFYING
        self._add_questions(found)
        return self.phase

    async def _clarifying_round(self, ai: CuratorAIService) -> Optional[List[Question]]:
        # One call per answered initial question, strictly one after another
        revision = self.state.revision
        resume, job = self._inputs()
        by_id = {q.id: q for q in self.state.questions}
        found: List[Question] = []
        for qid in self.state.initial_question_ids:
            answer = self.answer_for(qid)
            if answer is None or qid not in by_id:
                continue
            more = await ai.generate_clarifying_questions(
                resume, job, self.state.answers,
                question_text=by_id[qid].question, selected_answer=answer.answer,
            )
            if self._stale(revision, "clarifying questions"):
                return None
            found.extend(more)
        return found

    async def _generic_round(self, ai: CuratorAIService) -> Optional[List[Question]]:
        revision = self.state.revision
        resume, job = self._inputs()
        more = await ai.generate_clarifying_questions(
            resume, job, self.state.answers, questions=self.state.questions,
        )
        if self._stale(revision, "follow-up questions"):
            return None
        return more

    def skip_to_suggestions(self) -> None:
        self._require(Phase.QUESTIONS, action="skip to suggestions")
        self._goto(Phase.SUGGESTIONS)

    # ----- suggestions -----

    async def load_suggestions(self, ai: CuratorAIService, refresh: bool = False) -> List[Suggestion]:
        """Generate suggestions from the current answers.

        Suggestions already generated from the same answers are reused
        unless ``refresh`` is set.
        """
        self._require(Phase.SUGGESTIONS, action="load suggestions")
        if self.state.suggestions and not refresh and self.state.suggestions_basis == self.state.answers:
            return self.state.suggestions

        revision = self.state.revision
        resume, job = self._inputs()
        basis = [a.model_copy() for a in self.state.answers]
        suggestions = await ai.generate_suggestions(resume, job, basis, self.state.questions)
        if self._stale(revision, "suggestions"):
            return []

        self.state.suggestions = suggestions
        self.state.suggestions_basis = basis
        self.state.accepted_suggestion_ids = []
        self._say("assistant", f"Generated {len(suggestions)} suggestions")
        return suggestions

    def _suggestion(self, suggestion_id: str) -> Suggestion:
        for s in self.state.suggestions:
            if s.id == suggestion_id:
                return s
        raise ConversationError(f"Unknown suggestion '{suggestion_id}'")

    def accept_suggestion(self, suggestion_id: str) -> None:
        self._require(Phase.SUGGESTIONS, action="accept a suggestion")
        self._suggestion(suggestion_id)
        if suggestion_id not in self.state.accepted_suggestion_ids:
            self.state.accepted_suggestion_ids.append(suggestion_id)
            self._touch()

    def reject_suggestion(self, suggestion_id: str) -> None:
        self._require(Phase.SUGGESTIONS, action="reject a suggestion")
        self._suggestion(suggestion_id)
        if suggestion_id in self.state.accepted_suggestion_ids:
            self.state.accepted_suggestion_ids.remove(suggestion_id)
            self._touch()

    # ----- generate -----

    async def generate(self, ai: CuratorAIService) -> Optional[str]:
        """Produce the final resume from the accepted suggestions only.

        Calling again from ``generate`` retries after a failed attempt.
        """
        self._require(Phase.SUGGESTIONS, Phase.GENERATE, action="generate the resume")
        if self.phase == Phase.SUGGESTIONS:
            self.state.final_resume = None
            self._goto(Phase.GENERATE)

        revision = self.state.revision
        resume, job = self._inputs()
        text = await ai.generate_final_resume(
            resume, job, self.accepted_suggestions(), self.state.answers, self.state.questions,
        )
        if self._stale(revision, "final resume"):
            return None
        self.state.final_resume = text
        self._say("assistant", text)
        return text

    # ----- navigation -----

    def back(self) -> Phase:
        """Step back one phase, keeping everything collected so far."""
        index = PHASE_ORDER.index(self.phase)
        if index == 0:
            raise ConversationError("Already at the first step")
        self._goto(PHASE_ORDER[index - 1])
        return self.phase

    def start_over(self) -> None:
        logger.info("Conversation reset")
        self.state = ConversationState(revision=self.state.revision + 1)
