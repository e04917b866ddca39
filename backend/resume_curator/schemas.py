from datetime import datetime, timezone
from typing import List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    # Wire format is camelCase (browser client); attributes stay snake_case
    model_config = ConfigDict(populate_by_name=True)


class Resume(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    file_name: str = Field(alias="fileName")
    uploaded_at: datetime = Field(default_factory=_now, alias="uploadedAt")


class JobDescription(CamelModel):
    url: str = ""
    text: str
    title: Optional[str] = None
    company: Optional[str] = None
    fetched_at: datetime = Field(default_factory=_now, alias="fetchedAt")


QuestionType = Literal["text", "textarea", "multiple-choice"]
SuggestionType = Literal["add", "remove", "emphasize", "reword"]


class Question(CamelModel):
    id: str
    question: str
    type: QuestionType
    options: Optional[List[str]] = None

    @model_validator(mode="after")
    def _options_for_choice(self):
        if self.type == "multiple-choice" and not self.options:
            raise ValueError("multiple-choice questions need at least one option")
        return self


class Answer(CamelModel):
    question_id: str = Field(alias="questionId")
    answer: str


class Suggestion(CamelModel):
    id: str
    type: SuggestionType
    section: Optional[str] = None
    current_text: Optional[str] = Field(default=None, alias="currentText")
    suggested_text: Optional[str] = Field(default=None, alias="suggestedText")
    reason: str


class HistoryEntry(BaseModel):
    role: Literal["user", "assistant"]
    content: str


# ----- Stateless API bodies -----

class JobFetchRequest(BaseModel):
    url: str


class JobTextRequest(CamelModel):
    """Either a URL to fetch or pasted posting text"""

    url: Optional[str] = None
    text: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None

    @model_validator(mode="after")
    def _url_or_text(self):
        if not (self.url or (self.text and self.text.strip())):
            raise ValueError("Provide a job description URL or text")
        return self


class QuestionsRequest(CamelModel):
    resume: str = Field(min_length=1)
    job_description: str = Field(min_length=1, alias="jobDescription")


class FollowUpRequest(QuestionsRequest):
    answers: List[Answer]
    question_text: Optional[str] = Field(default=None, alias="questionText")
    selected_answer: Optional[str] = Field(default=None, alias="selectedAnswer")


class SuggestionsRequest(QuestionsRequest):
    answers: List[Answer]


class GenerateRequest(QuestionsRequest):
    suggestions: List[Suggestion] = []
    answers: List[Answer] = []


class QuestionsOut(BaseModel):
    questions: List[Question]


class SuggestionsOut(BaseModel):
    suggestions: List[Suggestion]


class GenerateOut(CamelModel):
    resume: str
    suggestions_applied: int = Field(alias="suggestionsApplied")


class ResumeOut(BaseModel):
    resume: Resume


class JobDescriptionOut(CamelModel):
    job_description: JobDescription = Field(alias="jobDescription")


# ----- Conversation API bodies -----

class AnswerIn(CamelModel):
    question_id: str = Field(alias="questionId")
    answer: str = Field(min_length=1)
