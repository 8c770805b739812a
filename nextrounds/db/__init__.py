"""
Database module - Supabase Postgres connection and Supabase auth clients.
"""
from nextrounds.db.postgres import get_db_session, test_postgres_connection
from nextrounds.db.supabase import get_supabase_client, get_supabase_admin, test_supabase_connection

__all__ = [
    "get_db_session",
    "test_postgres_connection",
    "get_supabase_client",
    "get_supabase_admin",
    "test_supabase_connection"
]
