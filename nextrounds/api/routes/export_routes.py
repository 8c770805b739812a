"""
Export Routes

POST /export/{format} - Download generated questions as pdf, csv or docx
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from nextrounds.core.auth import get_current_user
from nextrounds.core.logging_config import get_logger
from nextrounds.schemas.schemas import ExportRequest
from nextrounds.services.export_service import EXPORT_FORMATS, export_filename, render_export
from nextrounds.services.usage_service import UsageService, get_usage_service, is_pro_user

logger = get_logger(__name__)

router = APIRouter(prefix="/export", tags=["Export"])


@router.post("/{fmt}")
def export_questions(
    fmt: str,
    data: ExportRequest,
    user: dict = Depends(get_current_user),
    usage: UsageService = Depends(get_usage_service)
):
    """
    PDF is available to everyone; CSV and DOCX need an active Pro plan.
    """
    fmt = fmt.lower()
    spec = EXPORT_FORMATS.get(fmt)
    if spec is None:
        raise HTTPException(status_code=400, detail=f"Unsupported export format '{fmt}'. Use pdf, csv or docx.")

    questions = {
        category: [item.model_dump() for item in items]
        for category, items in data.questions.items()
        if items
    }
    if not questions:
        raise HTTPException(status_code=400, detail="No questions to export")

    if spec["pro_only"] and not is_pro_user(usage.get_user_plan(user["id"])):
        raise HTTPException(
            status_code=403,
            detail=f"{fmt.upper()} export is available on the Pro plan. Upgrade to unlock all export formats."
        )

    content = render_export(fmt, questions)
    logger.info(f"Exported {fmt} for {user['id']} ({len(content)} bytes)")

    return Response(
        content=content,
        media_type=spec["media_type"],
        headers={"Content-Disposition": f'attachment; filename="{export_filename(fmt)}"'}
    )
