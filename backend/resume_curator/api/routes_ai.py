"""
Stateless tailoring endpoints.

The browser holds the conversation and posts the resume/job text with each
call. Curator errors propagate to the app-level handler, which renders
them as ``{error, details, suggestion}``.
"""
import logging
import os

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ..ai_services import get_ai_service
from ..db import get_db
from ..extract import extract_text
from ..ingest import fetch_job_description
from ..schemas import (
    FollowUpRequest, GenerateOut, GenerateRequest, JobDescriptionOut, JobFetchRequest,
    QuestionsOut, QuestionsRequest, Resume, ResumeOut, SuggestionsOut, SuggestionsRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tailoring"])


async def read_resume_upload(file: UploadFile) -> Resume:
    """Validate an uploaded resume file and extract its text"""
    if not file.filename:
        raise HTTPException(400, "No file provided")
    max_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
    too_large = HTTPException(413, f"File too large (limit {max_bytes} bytes)")
    if file.size is not None and file.size > max_bytes:
        raise too_large
    # size is not always known up front; never buffer more than limit + 1
    contents = await file.read(max_bytes + 1)
    if len(contents) > max_bytes:
        raise too_large
    text = await run_in_threadpool(extract_text, file.filename, contents, file.content_type)
    return Resume(text=text, file_name=file.filename)


@router.post("/resume/upload", response_model=ResumeOut)
async def upload_resume(file: UploadFile = File(...)):
    return ResumeOut(resume=await read_resume_upload(file))


@router.post("/jd/fetch", response_model=JobDescriptionOut)
async def fetch_jd(body: JobFetchRequest):
    if not body.url.strip():
        raise HTTPException(400, "URL is required")
    return JobDescriptionOut(job_description=await fetch_job_description(body.url.strip()))


@router.post("/questions/generate", response_model=QuestionsOut)
async def generate_questions(body: QuestionsRequest, db: Session = Depends(get_db)):
    ai = get_ai_service(db=db)
    questions = await ai.generate_initial_questions(body.resume, body.job_description)
    return QuestionsOut(questions=questions)


@router.post("/questions/followup", response_model=QuestionsOut)
async def generate_followup(body: FollowUpRequest, db: Session = Depends(get_db)):
    """Optional follow-ups; always 200, empty list when none or on failure"""
    ai = get_ai_service(db=db)
    questions = await ai.generate_clarifying_questions(
        body.resume, body.job_description, body.answers,
        question_text=body.question_text, selected_answer=body.selected_answer,
    )
    return QuestionsOut(questions=questions)


@router.post("/suggestions/generate", response_model=SuggestionsOut)
async def generate_suggestions(body: SuggestionsRequest, db: Session = Depends(get_db)):
    ai = get_ai_service(db=db)
    suggestions = await ai.generate_suggestions(body.resume, body.job_description, body.answers)
    return SuggestionsOut(suggestions=suggestions)


@router.post("/generate", response_model=GenerateOut)
async def generate_resume(body: GenerateRequest, db: Session = Depends(get_db)):
    # Client sends only the suggestions the user accepted
    logger.info("Generating resume: resume=%d chars, jd=%d chars, suggestions=%d, answers=%d",
                len(body.resume), len(body.job_description), len(body.suggestions), len(body.answers))
    ai = get_ai_service(db=db)
    text = await ai.generate_final_resume(body.resume, body.job_description, body.suggestions, body.answers)
    return GenerateOut(resume=text, suggestions_applied=len(body.suggestions))
