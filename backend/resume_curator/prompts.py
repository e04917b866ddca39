"""
Prompt templates for each step of the tailoring conversation.

All builders are pure functions of their inputs. The three JSON-producing
prompts end with the same "Return ONLY valid JSON" instruction; the final
resume prompt asks for formatted plain text instead.
"""
from typing import Dict, Iterable, List, Optional

from .config import INITIAL_QUESTION_COUNT, MAX_JOB_CHARS, MAX_RESUME_CHARS
from .schemas import Answer, Question, Suggestion

ELLIPSIS = "..."
JSON_ONLY = "Return ONLY valid JSON, no other text."

QUESTION_SHAPE = """Return your questions as a JSON array where each question has:
- id: a unique identifier
- question: the question text
- type: "text", "textarea", or "multiple-choice"
- options: (optional) array of options when type is multiple-choice"""


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def _inputs(resume: str, job: str) -> str:
    return f"""RESUME:
{truncate(resume, MAX_RESUME_CHARS)}

JOB DESCRIPTION:
{truncate(job, MAX_JOB_CHARS)}"""


def format_answers(answers: Iterable[Answer], questions: Optional[Iterable[Question]] = None) -> str:
    """Render answers as Q/A pairs, using question text when it is known."""
    lookup: Dict[str, str] = {q.id: q.question for q in (questions or [])}
    blocks = [f"Q: {lookup.get(a.question_id, a.question_id)}\nA: {a.answer}" for a in answers]
    return "\n\n".join(blocks) if blocks else "(no answers provided)"


def format_suggestions(suggestions: Iterable[Suggestion]) -> str:
    lines: List[str] = []
    for s in suggestions:
        line = f"- {s.type.upper()}"
        if s.section:
            line += f" [{s.section}]"
        line += f": {s.reason}"
        if s.current_text:
            line += f"\n  Current: {s.current_text}"
        if s.suggested_text:
            line += f"\n  Suggested: {s.suggested_text}"
        lines.append(line)
    return "\n".join(lines) if lines else "(no suggestions accepted)"


def initial_questions_prompt(resume: str, job: str, count: int = INITIAL_QUESTION_COUNT) -> str:
    return f"""You are an expert career coach helping someone tailor their resume for a job application.

{_inputs(resume, job)}

Compare the resume with the job description and identify the most important gaps between what the job requires and what the resume shows.
Generate exactly {count} strategic multiple-choice questions that help bridge those gaps. Each question should:
1. Target one specific requirement of the job that the resume does not clearly demonstrate
2. Offer 3-5 concrete answer options describing plausible levels of experience
3. Include an option for "No direct experience" where it makes sense

Return your questions as a JSON array where each question has:
- id: a unique identifier (e.g. "q1")
- question: the question text
- type: "multiple-choice"
- options: array of answer options

{JSON_ONLY}"""


def clarifying_questions_prompt(resume: str, job: str, question_text: str, selected_answer: str) -> str:
    """Prompt for follow-ups about one specific answered question."""
    return f"""You are an expert career coach helping someone tailor their resume for a job application.

{_inputs(resume, job)}

The candidate was asked:
"{question_text}"

They answered:
"{selected_answer}"

Decide whether you need more detail about this answer to write strong resume content (for example concrete projects, scope, tools or measurable results).
If you do, generate 1-2 short follow-up questions about this answer only. Use type "text" for short answers and "textarea" for longer descriptions.
If the answer is already clear enough, or the candidate has no relevant experience, return an empty array [].

{QUESTION_SHAPE}

{JSON_ONLY}"""


def followup_questions_prompt(
    resume: str, job: str, answers: Iterable[Answer], questions: Optional[Iterable[Question]] = None
) -> str:
    """Prompt for generic follow-ups across all answers so far."""
    return f"""Based on the resume, job description, and previous answers below, determine if you need to ask any follow-up questions to better understand the candidate.

{_inputs(resume, job)}

PREVIOUS ANSWERS:
{format_answers(answers, questions)}

IMPORTANT: Only generate follow-up questions if there is CRITICAL information missing that is absolutely necessary to provide good resume suggestions. If you have enough information to provide helpful suggestions, return an empty array.

If you need more information, generate 1-3 additional clarifying questions. Otherwise, return an empty array.

{QUESTION_SHAPE}

{JSON_ONLY}"""


def suggestions_prompt(
    resume: str, job: str, answers: Iterable[Answer], questions: Optional[Iterable[Question]] = None
) -> str:
    return f"""You are an expert resume reviewer helping someone tailor their resume for a specific job.

{_inputs(resume, job)}

CANDIDATE'S ANSWERS TO CLARIFYING QUESTIONS:
{format_answers(answers, questions)}

Analyze the resume against the job description and provide specific, actionable suggestions to improve the resume. For each suggestion, provide:
1. Type: "add" (add new content), "remove" (remove unnecessary content), "emphasize" (highlight existing content), or "reword" (rewrite existing content)
2. Section: which section of the resume (e.g., "Experience", "Skills", "Summary")
3. Current text: (if applicable) the current text that should be changed
4. Suggested text: (if applicable) the suggested new text
5. Reason: why this change will help match the job description

Only suggest content that is supported by the resume or by the candidate's answers. Never invent experience.

Return your suggestions as a JSON array where each suggestion has:
- id: a unique identifier
- type: "add" | "remove" | "emphasize" | "reword"
- section: (optional) the resume section
- currentText: (optional) current text to change
- suggestedText: (optional) suggested new text
- reason: explanation of why this suggestion helps

{JSON_ONLY}"""


def final_resume_prompt(
    resume: str,
    job: str,
    accepted: Iterable[Suggestion],
    answers: Iterable[Answer],
    questions: Optional[Iterable[Question]] = None,
) -> str:
    return f"""Generate a curated resume based on the original resume, job description, accepted suggestions, and candidate's answers.

ORIGINAL RESUME:
{truncate(resume, MAX_RESUME_CHARS)}

JOB DESCRIPTION:
{truncate(job, MAX_JOB_CHARS)}

ACCEPTED SUGGESTIONS:
{format_suggestions(accepted)}

CANDIDATE'S ANSWERS:
{format_answers(answers, questions)}

Create a complete, well-formatted resume that:
1. Incorporates all accepted suggestions
2. Emphasizes relevant experience and skills for this job
3. Uses keywords from the job description naturally
4. Maintains professional formatting
5. Is ready to be used for this specific job application

Return the complete resume text, formatted clearly with sections (Summary, Experience, Education, Skills, etc.)."""
