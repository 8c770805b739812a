"""
Postgres Record Services - CRUD operations for the Supabase tables.

Tables used by the application:
1. users                 - plan, subscription status and Stripe linkage
2. question_generations  - one row per generation (the usage meter)
3. usage_tracking        - denormalised monthly counter per user
4. user_resumes          - extracted resume text, one active row per user
5. stripe_webhook_events - processed webhook deliveries (idempotency)

Each class wraps one table. Services receive these through their
constructors so tests can pass in-memory stand-ins.
"""

from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import text

from nextrounds.db.postgres import get_db_session


USER_COLUMNS = """
    id, email, full_name, subscription_plan, subscription_status,
    stripe_customer_id, subscription_end_date, subscription_renewal_date,
    subscription_event_at, created_at, updated_at
"""

# Columns the subscription reconciliation is allowed to write
SUBSCRIPTION_FIELDS = {
    "subscription_plan",
    "subscription_status",
    "stripe_customer_id",
    "subscription_end_date",
    "subscription_renewal_date",
    "subscription_event_at",
}


def _row_to_dict(row) -> Optional[dict]:
    return dict(row) if row is not None else None


# ============================================================
# USERS TABLE
# ============================================================

class UserRecordService:
    """Reads and subscription updates on the users table."""

    def get_by_id(self, user_id: str) -> Optional[dict]:
        with get_db_session() as db:
            result = db.execute(
                text(f"SELECT {USER_COLUMNS} FROM users WHERE id = :id"),
                {"id": user_id}
            )
            return _row_to_dict(result.mappings().fetchone())

    def get_by_customer_id(self, customer_id: str) -> Optional[dict]:
        with get_db_session() as db:
            result = db.execute(
                text(f"SELECT {USER_COLUMNS} FROM users WHERE stripe_customer_id = :cid LIMIT 1"),
                {"cid": customer_id}
            )
            return _row_to_dict(result.mappings().fetchone())

    def update_subscription(self, user_id: str, **fields) -> Optional[dict]:
        """
        Update subscription columns. Only provided fields are written;
        None is written as SQL NULL (used to clear dates).

        Returns:
            Updated row, or None if the user does not exist
        """
        unknown = set(fields) - SUBSCRIPTION_FIELDS
        if unknown:
            raise ValueError(f"Not a subscription field: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_by_id(user_id)

        updates = [f"{field} = :{field}" for field in fields]
        params = dict(fields, id=user_id, now=datetime.now(timezone.utc))

        with get_db_session() as db:
            result = db.execute(
                text(f"""
                    UPDATE users SET {', '.join(updates)}, updated_at = :now
                    WHERE id = :id
                    RETURNING {USER_COLUMNS}
                """),
                params
            )
            return _row_to_dict(result.mappings().fetchone())

    def list_expired_pro(self, now: datetime) -> List[dict]:
        """Pro/active users whose paid period has ended."""
        with get_db_session() as db:
            result = db.execute(
                text(f"""
                    SELECT {USER_COLUMNS} FROM users
                    WHERE subscription_plan = 'pro'
                      AND subscription_status = 'active'
                      AND subscription_end_date IS NOT NULL
                      AND subscription_end_date <= :now
                    ORDER BY subscription_end_date
                """),
                {"now": now}
            )
            return [dict(row) for row in result.mappings().all()]


# ============================================================
# QUESTION GENERATIONS TABLE
# The usage meter: quota is counted from these rows
# ============================================================

class GenerationRecordService:

    def count_since(self, user_id: str, since: datetime) -> int:
        with get_db_session() as db:
            result = db.execute(
                text("""
                    SELECT COUNT(*) FROM question_generations
                    WHERE user_id = :user_id AND generated_at >= :since
                """),
                {"user_id": user_id, "since": since}
            )
            return int(result.scalar() or 0)

    def insert(
        self,
        user_id: str,
        job_title: str,
        hiring_stage: str,
        questions_count: int,
        company_name: str = None,
        generated_at: datetime = None
    ) -> dict:
        with get_db_session() as db:
            result = db.execute(
                text("""
                    INSERT INTO question_generations
                        (user_id, job_title, company_name, hiring_stage, questions_count, generated_at)
                    VALUES (:user_id, :job_title, :company_name, :hiring_stage, :questions_count, :generated_at)
                    RETURNING id, user_id, job_title, company_name, hiring_stage, questions_count, generated_at
                """),
                {
                    "user_id": user_id,
                    "job_title": job_title,
                    "company_name": company_name,
                    "hiring_stage": hiring_stage,
                    "questions_count": questions_count,
                    "generated_at": generated_at or datetime.now(timezone.utc)
                }
            )
            return dict(result.mappings().fetchone())


# ============================================================
# USAGE TRACKING TABLE
# ============================================================

class UsageTrackingService:

    def set_count(self, user_id: str, questions_generated: int, period_start: datetime):
        """Upsert the monthly counter for a user."""
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO usage_tracking (user_id, questions_generated, last_reset_date, updated_at)
                    VALUES (:user_id, :count, :period_start, :now)
                    ON CONFLICT (user_id) DO UPDATE
                    SET questions_generated = EXCLUDED.questions_generated,
                        last_reset_date = EXCLUDED.last_reset_date,
                        updated_at = EXCLUDED.updated_at
                """),
                {
                    "user_id": user_id,
                    "count": questions_generated,
                    "period_start": period_start,
                    "now": datetime.now(timezone.utc)
                }
            )


# ============================================================
# USER RESUMES TABLE
# ============================================================

class ResumeRecordService:

    def store_active(
        self,
        user_id: str,
        filename: str,
        content: str,
        file_type: str,
        file_size: int
    ) -> str:
        """
        Store a resume as the user's only active resume.

        Returns:
            id of the new row
        """
        with get_db_session() as db:
            db.execute(
                text("UPDATE user_resumes SET is_active = FALSE WHERE user_id = :user_id AND is_active"),
                {"user_id": user_id}
            )
            result = db.execute(
                text("""
                    INSERT INTO user_resumes
                        (user_id, resume_filename, resume_content, file_type, file_size, is_active)
                    VALUES (:user_id, :filename, :content, :file_type, :file_size, TRUE)
                    RETURNING id
                """),
                {
                    "user_id": user_id,
                    "filename": filename,
                    "content": content,
                    "file_type": file_type,
                    "file_size": file_size
                }
            )
            return str(result.scalar())


# ============================================================
# STRIPE WEBHOOK EVENTS TABLE
# ============================================================

class WebhookEventService:

    def exists(self, event_id: str) -> bool:
        with get_db_session() as db:
            result = db.execute(
                text("SELECT 1 FROM stripe_webhook_events WHERE event_id = :id"),
                {"id": event_id}
            )
            return result.fetchone() is not None

    def record(self, event_id: str, event_type: str) -> bool:
        """Mark an event as processed. Returns False if it was already recorded."""
        with get_db_session() as db:
            result = db.execute(
                text("""
                    INSERT INTO stripe_webhook_events (event_id, event_type)
                    VALUES (:id, :type)
                    ON CONFLICT (event_id) DO NOTHING
                    RETURNING event_id
                """),
                {"id": event_id, "type": event_type}
            )
            return result.fetchone() is not None
