"""
Server-held conversations: each request loads the state, runs one
transition of the state machine and saves it back.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import Field
from sqlalchemy.orm import Session

from ..ai_services import get_ai_service
from ..conversation import Conversation, ConversationState
from ..db import get_db
from ..ingest import fetch_job_description
from ..models import Conversation as ConversationRow
from ..schemas import AnswerIn, CamelModel, JobDescription, JobTextRequest, Question
from .routes_ai import read_resume_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


class ConversationOut(CamelModel):
    id: str
    state: ConversationState
    current_question: Optional[Question] = Field(default=None, alias="currentQuestion")


def _row(db: Session, conversation_id: str) -> ConversationRow:
    row = db.get(ConversationRow, conversation_id)
    if not row:
        raise HTTPException(404, "conversation not found")
    return row


def _open(db: Session, conversation_id: str):
    row = _row(db, conversation_id)
    convo = Conversation(ConversationState.model_validate(row.state or {}))
    return row, convo, convo.state.revision


def _out(row_id: str, convo: Conversation) -> ConversationOut:
    return ConversationOut(id=row_id, state=convo.state, current_question=convo.current_question)


def _save(db: Session, row: ConversationRow, convo: Conversation, loaded_revision: int) -> ConversationOut:
    # Another request navigated while we awaited the model: keep its state
    db.refresh(row)
    stored = ConversationState.model_validate(row.state or {})
    if stored.revision != loaded_revision:
        logger.info("Conversation %s moved on during the call; discarding result", row.id)
        return _out(row.id, Conversation(stored))
    row.state = convo.state.model_dump(mode="json", by_alias=True)
    row.phase = convo.phase.value
    db.commit()
    return _out(row.id, convo)


@router.post("", response_model=ConversationOut)
def create_conversation(db: Session = Depends(get_db)):
    convo = Conversation()
    row = ConversationRow(phase=convo.phase.value, state=convo.state.model_dump(mode="json", by_alias=True))
    db.add(row)
    db.commit()
    return _out(row.id, convo)


@router.get("/{conversation_id}", response_model=ConversationOut)
def get_conversation(conversation_id: str, db: Session = Depends(get_db)):
    row, convo, _ = _open(db, conversation_id)
    return _out(row.id, convo)


@router.post("/{conversation_id}/resume", response_model=ConversationOut)
async def attach_resume(conversation_id: str, file: UploadFile = File(...), db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    convo.attach_resume(await read_resume_upload(file))
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/job-description", response_model=ConversationOut)
async def attach_job_description(conversation_id: str, body: JobTextRequest, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    if body.text and body.text.strip():
        job = JobDescription(url=body.url or "", text=body.text.strip(), title=body.title, company=body.company)
    else:
        job = await fetch_job_description(body.url)
    convo.attach_job_description(job)
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/questions", response_model=ConversationOut)
async def load_questions(conversation_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    await convo.start_questions(get_ai_service(db=db, conversation_id=row.id))
    return _save(db, row, convo, rev)


@router.put("/{conversation_id}/answers", response_model=ConversationOut)
def answer_question(conversation_id: str, body: AnswerIn, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    convo.answer(body.question_id, body.answer)
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/next", response_model=ConversationOut)
async def next_step(conversation_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    await convo.advance(get_ai_service(db=db, conversation_id=row.id))
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/skip", response_model=ConversationOut)
def skip_to_suggestions(conversation_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    convo.skip_to_suggestions()
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/suggestions", response_model=ConversationOut)
async def load_suggestions(conversation_id: str, refresh: bool = False, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    await convo.load_suggestions(get_ai_service(db=db, conversation_id=row.id), refresh=refresh)
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/suggestions/{suggestion_id}/accept", response_model=ConversationOut)
def accept_suggestion(conversation_id: str, suggestion_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    convo.accept_suggestion(suggestion_id)
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/suggestions/{suggestion_id}/reject", response_model=ConversationOut)
def reject_suggestion(conversation_id: str, suggestion_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    convo.reject_suggestion(suggestion_id)
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/generate", response_model=ConversationOut)
async def generate_resume(conversation_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    await convo.generate(get_ai_service(db=db, conversation_id=row.id))
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/back", response_model=ConversationOut)
def go_back(conversation_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    convo.back()
    return _save(db, row, convo, rev)


@router.post("/{conversation_id}/reset", response_model=ConversationOut)
def start_over(conversation_id: str, db: Session = Depends(get_db)):
    row, convo, rev = _open(db, conversation_id)
    convo.start_over()
    return _save(db, row, convo, rev)
