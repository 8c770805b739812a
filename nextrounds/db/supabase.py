"""
Supabase client singletons.

Two clients, mirroring how Supabase separates privileges:
- anon client: verifies end-user access tokens (auth.get_user)
- admin client: service-role key, used for auth admin calls
  (listing users, password resets)

Table data does not go through these clients; it is read and written
over the direct Postgres connection in nextrounds.db.postgres.
"""
from supabase import Client, ClientOptions, create_client

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

# Global clients (created lazily so importing never needs credentials)
_client: Client = None
_admin_client: Client = None


def get_supabase_client() -> Client:
    """Get or create the anon-key Supabase client (singleton pattern)"""
    global _client
    if _client is None:
        _client = create_client(settings.supabase_url, settings.supabase_anon_key)
    return _client


def get_supabase_admin() -> Client:
    """Get or create the service-role Supabase client (singleton pattern)"""
    global _admin_client
    if _admin_client is None:
        _admin_client = create_client(settings.supabase_url, settings.supabase_service_role_key)
    return _admin_client


def create_recovery_client() -> Client:
    """
    Fresh service-role client for verifying a recovery token.

    verify_otp signs the client in as the user and swaps its Authorization
    header for the user's token, so it must never run on the shared admin
    client.
    """
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
        options=ClientOptions(persist_session=False, auto_refresh_token=False)
    )


def test_supabase_connection() -> bool:
    """
    Test if Supabase auth is reachable with the service-role key.
    Returns True if connection successful, False otherwise.
    """
    if not settings.supabase_url or not settings.supabase_service_role_key:
        return False
    try:
        get_supabase_admin().auth.admin.list_users()
        return True
    except Exception as e:
        logger.warning(f"Supabase connection failed: {e}")
        return False
