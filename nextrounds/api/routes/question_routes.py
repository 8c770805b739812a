"""
Question Routes

POST /generate-questions - Generate interview questions from a JD + resume
GET /resume/formats - Supported resume formats
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from nextrounds.core.auth import get_current_user
from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger
from nextrounds.core.rate_limit import SlidingWindowLimiter
from nextrounds.schemas.schemas import GenerateQuestionsResponse, ResumeFormatsResponse
from nextrounds.services.question_service import QuestionGenerationService, get_question_service
from nextrounds.utils.file_upload import get_supported_formats

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(tags=["Questions"])

# Per client IP, per worker process
_generation_limiter = SlidingWindowLimiter(
    max_calls=settings.generation_rate_limit_per_hour,
    window_seconds=3600
)


def get_generation_limiter() -> Optional[SlidingWindowLimiter]:
    """None disables the per-IP limit."""
    if settings.generation_rate_limit_per_hour <= 0:
        return None
    return _generation_limiter


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post(
    "/generate-questions",
    response_model=GenerateQuestionsResponse,
    response_model_exclude_unset=True
)
async def generate_questions(
    request: Request,
    job_description: Optional[str] = Form(None),
    hiring_stage: Optional[str] = Form(None),
    resume: Optional[UploadFile] = File(None, description="Resume file (PDF, DOCX, or TXT)"),
    user: dict = Depends(get_current_user),
    service: QuestionGenerationService = Depends(get_question_service),
    limiter: Optional[SlidingWindowLimiter] = Depends(get_generation_limiter)
):
    """
    Generate categorised interview questions with answer guidance.

    Free users are limited per calendar month; Pro users are unlimited.
    Without a configured AI key a canned question set is returned
    (still counted against the quota).
    """
    quota = await run_in_threadpool(service.usage.check_quota, user["id"])

    if limiter is not None:
        allowed, retry_after = limiter.check(client_ip(request))
        if not allowed:
            raise HTTPException(
                status_code=429,
                detail="Rate limit exceeded. Please try again later.",
                headers={"Retry-After": str(retry_after)}
            )

    if not job_description or not hiring_stage or resume is None or not resume.filename:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        return await service.generate(user, quota, job_description, hiring_stage, resume)
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Question generation failed for {user['id']}")
        raise HTTPException(status_code=500, detail="Failed to generate questions. Please try again.")


@router.get("/resume/formats", response_model=ResumeFormatsResponse)
async def resume_formats():
    """Get supported resume file formats."""
    return get_supported_formats()
