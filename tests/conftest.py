"""
Pytest configuration and shared fixtures for the Next Rounds API tests.

External services (Postgres, Supabase, Stripe, Gemini) are replaced by
in-memory fakes injected through FastAPI dependency overrides.
"""

import os

# Settings are read once at import; pin the ones tests rely on
os.environ["GEMINI_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["SUPABASE_JWT_SECRET"] = ""
os.environ["CRON_SECRET"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["FREE_MONTHLY_LIMIT"] = "3"

import copy
from datetime import datetime, timezone

import pytest
import stripe
from fastapi.testclient import TestClient

from nextrounds.api.routes.billing_routes import require_stripe_client
from nextrounds.api.routes.contact_routes import get_contact_limiter
from nextrounds.api.routes.question_routes import get_generation_limiter
from nextrounds.core.auth import get_current_user
from nextrounds.core.rate_limit import SlidingWindowLimiter
from nextrounds.main import app
from nextrounds.services.postgres_service import SUBSCRIPTION_FIELDS
from nextrounds.services.question_service import QuestionGenerationService, get_question_service
from nextrounds.services.stripe_service import get_stripe_client
from nextrounds.services.subscription_service import SubscriptionService, get_subscription_service
from nextrounds.services.usage_service import UsageService, get_usage_service

USER_ID = "11111111-1111-1111-1111-111111111111"
USER_EMAIL = "candidate@example.com"


# ============================================================
# FAKE STORES
# ============================================================

class FakeUserStore:
    """Stands in for UserRecordService."""

    def __init__(self):
        self.rows = {}
        self.fail_update_for = set()

    def add(self, user_id=USER_ID, email=USER_EMAIL, **fields):
        row = {
            "id": user_id,
            "email": email,
            "full_name": None,
            "subscription_plan": "free",
            "subscription_status": "active",
            "stripe_customer_id": None,
            "subscription_end_date": None,
            "subscription_renewal_date": None,
            "subscription_event_at": None,
        }
        row.update(fields)
        self.rows[user_id] = row
        return row

    def get_by_id(self, user_id):
        row = self.rows.get(user_id)
        return copy.deepcopy(row) if row else None

    def get_by_customer_id(self, customer_id):
        for row in self.rows.values():
            if customer_id and row["stripe_customer_id"] == customer_id:
                return copy.deepcopy(row)
        return None

    def update_subscription(self, user_id, **fields):
        unknown = set(fields) - SUBSCRIPTION_FIELDS
        if unknown:
            raise ValueError(f"Not a subscription field: {unknown}")
        if user_id in self.fail_update_for:
            raise RuntimeError("update failed")
        if user_id not in self.rows:
            return None
        self.rows[user_id].update(fields)
        return copy.deepcopy(self.rows[user_id])

    def list_expired_pro(self, now):
        return [
            copy.deepcopy(row) for row in self.rows.values()
            if row["subscription_plan"] == "pro"
            and row["subscription_status"] == "active"
            and row["subscription_end_date"] is not None
            and row["subscription_end_date"] <= now
        ]


class FakeGenerationStore:
    """Stands in for GenerationRecordService."""

    def __init__(self):
        self.rows = []
        self.fail_count = False
        self.fail_insert = False

    def add(self, user_id=USER_ID, generated_at=None, **fields):
        row = {
            "user_id": user_id,
            "job_title": "Engineer",
            "hiring_stage": "Recruiter Screen",
            "questions_count": 20,
            "company_name": None,
            "generated_at": generated_at or datetime.now(timezone.utc),
        }
        row.update(fields)
        self.rows.append(row)
        return row

    def count_since(self, user_id, since):
        if self.fail_count:
            raise RuntimeError("count failed")
        return sum(1 for r in self.rows if r["user_id"] == user_id and r["generated_at"] >= since)

    def insert(self, user_id, job_title, hiring_stage, questions_count, company_name=None, generated_at=None):
        if self.fail_insert:
            raise RuntimeError("insert failed")
        return self.add(
            user_id=user_id,
            job_title=job_title,
            hiring_stage=hiring_stage,
            questions_count=questions_count,
            company_name=company_name,
            generated_at=generated_at,
        )


class FakeTrackingStore:
    def __init__(self):
        self.counts = {}
        self.fail = False

    def set_count(self, user_id, questions_generated, period_start):
        if self.fail:
            raise RuntimeError("tracking failed")
        self.counts[user_id] = (questions_generated, period_start)


class FakeResumeStore:
    def __init__(self):
        self.rows = []

    def store_active(self, user_id, filename, content, file_type, file_size):
        for row in self.rows:
            if row["user_id"] == user_id:
                row["is_active"] = False
        self.rows.append({
            "user_id": user_id,
            "resume_filename": filename,
            "resume_content": content,
            "file_type": file_type,
            "file_size": file_size,
            "is_active": True,
        })
        return str(len(self.rows))


class FakeEventStore:
    def __init__(self):
        self.ids = {}

    def exists(self, event_id):
        return event_id in self.ids

    def record(self, event_id, event_type):
        if event_id in self.ids:
            return False
        self.ids[event_id] = event_type
        return True


# ============================================================
# FAKE CLIENTS
# ============================================================

class FakeStripeClient:
    """Stands in for StripeClient."""

    def __init__(self):
        self.subscriptions = {}
        self.customers = {}
        self.checkout_calls = []
        self.portal_calls = []
        self.fail_lookup = False
        self.valid_signature = "t=1,v1=valid"

    def create_checkout_session(self, user_id, email, origin):
        self.checkout_calls.append({"user_id": user_id, "email": email, "origin": origin})
        return {"id": "cs_test_123", "url": "https://checkout.stripe.com/c/cs_test_123"}

    def create_portal_session(self, customer_id, return_url):
        self.portal_calls.append({"customer": customer_id, "return_url": return_url})
        return {"url": f"https://billing.stripe.com/p/{customer_id}"}

    def list_active_subscriptions(self, customer_id, limit=1):
        if self.fail_lookup:
            raise RuntimeError("stripe unavailable")
        return self.subscriptions.get(customer_id, [])[:limit]

    def find_customer_by_email(self, email):
        if self.fail_lookup:
            raise RuntimeError("stripe unavailable")
        return self.customers.get(email)

    def construct_event(self, payload, signature, secret=None):
        if signature != self.valid_signature:
            raise stripe.SignatureVerificationError("bad signature", signature)
        return payload


class FakeAIClient:
    """Stands in for GeminiClient; returns a canned payload or raises."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.prompts = []

    def generate_questions(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.payload


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def user_store():
    store = FakeUserStore()
    store.add()
    return store


@pytest.fixture
def generation_store():
    return FakeGenerationStore()


@pytest.fixture
def tracking_store():
    return FakeTrackingStore()


@pytest.fixture
def resume_store():
    return FakeResumeStore()


@pytest.fixture
def event_store():
    return FakeEventStore()


@pytest.fixture
def fake_stripe():
    return FakeStripeClient()


@pytest.fixture
def usage_service(user_store, generation_store, tracking_store, fake_stripe):
    return UsageService(
        users=user_store,
        generations=generation_store,
        tracking=tracking_store,
        stripe_client=fake_stripe,
        free_limit=3,
    )


@pytest.fixture
def subscription_service(user_store, event_store, fake_stripe):
    return SubscriptionService(users=user_store, events=event_store, stripe_client=fake_stripe)


@pytest.fixture
def ai_client():
    return FakeAIClient(payload={
        "Introductory Questions": [
            {
                "question": "Tell me about yourself.",
                "howToAnswer": "Present, past, future.",
                "example": "I build APIs in Python.",
            }
        ],
        "Technical Questions": [
            {"question": "How do you design a REST API?", "how_to_answer": "Start from resources."},
        ],
    })


@pytest.fixture
def question_service(usage_service, resume_store, ai_client):
    return QuestionGenerationService(usage=usage_service, resumes=resume_store, ai_client=ai_client)


@pytest.fixture
def contact_limiter():
    return SlidingWindowLimiter(3, 300)


@pytest.fixture
def client(usage_service, subscription_service, question_service, fake_stripe, contact_limiter):
    """TestClient authenticated as USER_ID with all services faked."""
    app.dependency_overrides[get_current_user] = lambda: {"id": USER_ID, "email": USER_EMAIL}
    app.dependency_overrides[get_usage_service] = lambda: usage_service
    app.dependency_overrides[get_subscription_service] = lambda: subscription_service
    app.dependency_overrides[get_question_service] = lambda: question_service
    app.dependency_overrides[get_stripe_client] = lambda: fake_stripe
    app.dependency_overrides[require_stripe_client] = lambda: fake_stripe
    app.dependency_overrides[get_generation_limiter] = lambda: None
    app.dependency_overrides[get_contact_limiter] = lambda: contact_limiter

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    """TestClient with no auth override."""
    app.dependency_overrides.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
