"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class SubscriptionPlan(str, Enum):
    free = "free"
    pro = "pro"


# ============================================================
# USAGE SCHEMAS
# ============================================================

class UsageSummary(BaseModel):
    current: int
    limit: int
    remaining: int
    is_pro: bool = False
    subscription_end_date: Optional[datetime] = None
    subscription_renewal_date: Optional[datetime] = None
    is_ending_soon: Optional[bool] = None
    is_subscription_cancelled: Optional[bool] = None


class UsageResponse(BaseModel):
    success: bool = True
    usage: UsageSummary


# ============================================================
# QUESTION SCHEMAS
# ============================================================

class QuestionItem(BaseModel):
    question: str
    how_to_answer: str = Field(
        default="", validation_alias=AliasChoices("how_to_answer", "howToAnswer")
    )
    example: str = ""


class GenerateQuestionsResponse(BaseModel):
    success: bool = True
    questions: Dict[str, List[QuestionItem]]
    usage: UsageSummary
    timestamp: str
    mock: Optional[bool] = None
    message: Optional[str] = None


class ResumeFormat(BaseModel):
    extension: str
    name: str
    content_type: str


class ResumeFormatsResponse(BaseModel):
    supported_formats: List[ResumeFormat]
    max_size_mb: int


# ============================================================
# EXPORT SCHEMAS
# ============================================================

class ExportRequest(BaseModel):
    questions: Dict[str, List[QuestionItem]]


# ============================================================
# BILLING SCHEMAS
# ============================================================

class CheckoutResponse(BaseModel):
    session_id: str
    url: Optional[str] = None


class PortalResponse(BaseModel):
    url: str


class SyncSubscriptionResponse(BaseModel):
    success: bool
    user: Optional[Dict[str, Any]] = None
    had_active_subscription: bool
    updated: bool


class ManualDowngradeResponse(BaseModel):
    success: bool
    message: str
    new_plan: SubscriptionPlan


class DowngradeError(BaseModel):
    user_id: str
    email: Optional[str] = None
    error: str


class ProcessDowngradesResponse(BaseModel):
    success: bool
    processed: int
    total: int
    errors: Optional[List[DowngradeError]] = None


class ExpiredUser(BaseModel):
    id: str
    email: Optional[str] = None
    subscription_end_date: Optional[datetime] = None


class ExpiredPreviewResponse(BaseModel):
    timestamp: datetime
    expired_subscriptions_count: int
    expired_users: List[ExpiredUser]


# ============================================================
# ACCOUNT SCHEMAS
# ============================================================

class CheckUserExistsRequest(BaseModel):
    email: str = Field(..., min_length=1)
    original_email: Optional[str] = None


class CheckUserExistsResponse(BaseModel):
    exists: bool


class PasswordResetRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str


# ============================================================
# CONTACT SCHEMAS
# ============================================================

class ContactRequest(BaseModel):
    name: str = ""
    email: str = ""
    subject: str = ""
    message: str = ""


# ============================================================
# GENERIC RESPONSE SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
