"""
Question Generation Service

Pipeline for one generation request:
1. Validate and extract the resume (utils.file_upload)
2. Screen inputs for active content
3. Store the resume as the user's active resume
4. Build the prompt and call the model
5. Normalise the model output into {category: [{question, how_to_answer, example}]}
6. Record the generation against the user's quota

The model output is untrusted: anything that is not a question object is
dropped rather than passed through.
"""
import json
from datetime import datetime, timezone

import openai
from fastapi import HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger
from nextrounds.services.gemini_client import get_gemini_client
from nextrounds.services.postgres_service import ResumeRecordService
from nextrounds.services.prompt_builder import build_prompt, validate_content
from nextrounds.services.usage_service import UsageService, get_usage_service
from nextrounds.utils.file_upload import extract_resume_text, read_resume, resume_content_type

settings = get_settings()
logger = get_logger(__name__)

MOCK_QUESTION_COUNT = 20


def normalize_question(item) -> dict:
    """Question item with snake_case keys, or None if it has no question."""
    if not isinstance(item, dict):
        return None
    question = item.get("question")
    if not isinstance(question, str) or not question.strip():
        return None
    how_to_answer = item.get("how_to_answer", item.get("howToAnswer", ""))
    example = item.get("example", "")
    return {
        "question": question.strip(),
        "how_to_answer": how_to_answer if isinstance(how_to_answer, str) else "",
        "example": example if isinstance(example, str) else "",
    }


def validate_questions(payload) -> dict:
    """
    Keep only categories that hold at least one usable question.

    Raises:
        HTTPException 500 when the payload is not an object or no
        category survives
    """
    if not isinstance(payload, dict):
        raise HTTPException(status_code=500, detail="Invalid response format")

    questions = {}
    for category, items in payload.items():
        if not isinstance(items, list):
            continue
        cleaned = [q for q in (normalize_question(item) for item in items) if q]
        if cleaned:
            questions[str(category)] = cleaned

    if not questions:
        raise HTTPException(status_code=500, detail="No questions generated")
    return questions


def count_questions(questions: dict) -> int:
    return sum(len(items) for items in questions.values())


MOCK_QUESTIONS = {
    "Introductory Questions": [
        {
            "question": "Can you tell me about yourself and your background?",
            "how_to_answer": (
                "Use the Present-Past-Future framework: start with your current role, "
                "highlight two or three relevant experiences, then connect your goals "
                "to this opportunity. Keep it under two minutes."
            ),
            "example": (
                "I'm a software engineer with three years of experience in React and "
                "JavaScript. I've built several web applications from scratch and "
                "improved user engagement by 40%. This role fits my goal of working "
                "on larger-scale systems."
            ),
        },
        {
            "question": "What interests you most about this position?",
            "how_to_answer": (
                "Connect the company's mission to your career goals. Name two or three "
                "specific things that attract you and avoid generic answers."
            ),
            "example": (
                "The chance to solve real user problems with modern tooling. Your focus "
                "on user experience matches what I enjoy most about front-end work."
            ),
        },
    ],
    "Technical Questions": [
        {
            "question": "Can you walk me through a recent project you built end to end?",
            "how_to_answer": (
                "Use the PREP method: state the point, give the reason, show an example "
                "from your work, then restate how it applies to this role."
            ),
            "example": (
                "I rebuilt our checkout flow as a set of React components backed by a "
                "typed API client, which cut checkout errors by a third."
            ),
        },
        {
            "question": "How do you stay current with technology trends?",
            "how_to_answer": (
                "Name concrete sources, explain how you try new tools on side projects, "
                "and how you share what you learn with your team."
            ),
            "example": (
                "I follow a few engineering blogs, attend local meetups and prototype "
                "new frameworks in small side projects before proposing them at work."
            ),
        },
    ],
    "Behavioral Questions": [
        {
            "question": "Tell me about a time you had to deal with a difficult team member.",
            "how_to_answer": (
                "Use the STAR method. Focus on your own actions and show empathy and "
                "professionalism rather than blame."
            ),
            "example": (
                "A teammate kept missing deadlines. In a one-on-one I learned they were "
                "overloaded, so we split the work into smaller tasks with regular "
                "check-ins and their delivery improved."
            ),
        },
        {
            "question": "Tell me about a time you made a mistake and how you handled it.",
            "how_to_answer": (
                "Use the STAR method with an accountability focus: how you found the "
                "problem, fixed it, and prevented it from recurring."
            ),
            "example": (
                "I shipped a change that slowed production. I rolled it back, traced it "
                "to missing load tests and added load testing to our CI pipeline."
            ),
        },
    ],
    "Role-Specific Questions": [
        {
            "question": "How would you approach architecting a scalable web application?",
            "how_to_answer": (
                "Start from requirements, then cover architecture, scaling and monitoring. "
                "Discuss trade-offs between approaches."
            ),
            "example": (
                "I'd size the expected load first, then put stateless services behind a "
                "load balancer with caching, a CDN for static assets and read replicas "
                "for the database."
            ),
        },
        {
            "question": "What's your approach to code quality and testing?",
            "how_to_answer": (
                "Cover standards, testing levels, code review and automation. Mention "
                "the tools you use and the metrics you track."
            ),
            "example": (
                "I write unit tests alongside features, keep end-to-end tests for core "
                "flows and rely on CI quality gates before anything is deployed."
            ),
        },
    ],
}


class QuestionGenerationService:
    """
    Runs the generation pipeline for an authenticated user.
    """

    def __init__(
        self,
        usage: UsageService = None,
        resumes: ResumeRecordService = None,
        ai_client=None
    ):
        self.usage = usage or get_usage_service()
        self.resumes = resumes or ResumeRecordService()
        self._ai_client = ai_client

    @property
    def ai_client(self):
        if self._ai_client is None:
            self._ai_client = get_gemini_client()
        return self._ai_client

    @property
    def ai_configured(self) -> bool:
        return self._ai_client is not None or settings.ai_configured

    async def generate_mock(self, user: dict, quota: dict, job_description: str, hiring_stage: str) -> dict:
        """Canned questions when no AI key is configured. Usage is still metered."""
        logger.info("Using mock data - GEMINI_API_KEY not configured")
        await run_in_threadpool(
            self.usage.record_generation,
            user["id"], job_description, hiring_stage, MOCK_QUESTION_COUNT, quota["current"]
        )
        return {
            "success": True,
            "questions": MOCK_QUESTIONS,
            "usage": self.usage.usage_after_generation(quota),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mock": True,
            "message": "Using mock data. Configure GEMINI_API_KEY for AI-generated questions.",
        }

    async def generate(
        self,
        user: dict,
        quota: dict,
        job_description: str,
        hiring_stage: str,
        resume: UploadFile
    ) -> dict:
        """
        Database, extraction and model calls block, so they run in the
        threadpool rather than on the event loop.
        """
        if not self.ai_configured:
            return await self.generate_mock(user, quota, job_description, hiring_stage)

        content, ext = await read_resume(resume)

        if len(job_description) > settings.max_job_description_chars:
            raise HTTPException(
                status_code=400,
                detail=(
                    "Job description too long. Maximum "
                    f"{settings.max_job_description_chars:,} characters allowed."
                )
            )

        resume_text = await run_in_threadpool(extract_resume_text, content, ext)
        logger.info(f"Extracted {len(resume_text)} characters from {resume.filename}")

        if not validate_content(resume_text) or not validate_content(job_description):
            raise HTTPException(status_code=400, detail="Invalid content detected")

        try:
            await run_in_threadpool(
                self.resumes.store_active,
                user["id"], resume.filename, resume_text, resume_content_type(resume, ext), len(content)
            )
        except Exception as e:
            logger.warning(f"Could not store resume for {user['id']}: {e}")

        if len(resume_text) > settings.max_resume_chars:
            raise HTTPException(
                status_code=400,
                detail=f"Resume too long. Maximum {settings.max_resume_chars:,} characters allowed."
            )

        prompt = build_prompt(job_description, resume_text, hiring_stage)
        try:
            payload = await run_in_threadpool(self.ai_client.generate_questions, prompt)
        except openai.APITimeoutError:
            logger.error(f"AI request timed out for {user['id']}")
            raise HTTPException(status_code=500, detail="Request timeout")
        except json.JSONDecodeError as e:
            logger.error(f"Unparseable AI response: {e}")
            raise HTTPException(status_code=500, detail="Failed to parse AI response")

        questions = validate_questions(payload)
        total = count_questions(questions)
        logger.info(f"Generated {total} questions in {len(questions)} categories for {user['id']}")

        await run_in_threadpool(
            self.usage.record_generation,
            user["id"], job_description, hiring_stage, total, quota["current"]
        )

        return {
            "success": True,
            "questions": questions,
            "usage": self.usage.usage_after_generation(quota),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


_question_service: QuestionGenerationService = None


def get_question_service() -> QuestionGenerationService:
    """Get or create the question service (singleton pattern)"""
    global _question_service
    if _question_service is None:
        _question_service = QuestionGenerationService()
    return _question_service
