"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from nextrounds.api.routes.usage_routes import router as usage_router
from nextrounds.api.routes.question_routes import router as question_router
from nextrounds.api.routes.export_routes import router as export_router
from nextrounds.api.routes.billing_routes import router as billing_router
from nextrounds.api.routes.webhook_routes import router as webhook_router
from nextrounds.api.routes.account_routes import router as account_router
from nextrounds.api.routes.contact_routes import router as contact_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(usage_router)
api_router.include_router(question_router)
api_router.include_router(export_router)
api_router.include_router(billing_router)
api_router.include_router(webhook_router)
api_router.include_router(account_router)
api_router.include_router(contact_router)
