"""
Database connection management.

Provides the Supabase client singleton used by the slot gateway. The sheet
writes buyer records, so the service role key is preferred when configured.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseConnectionError(Exception):
    """Failed to connect to Supabase."""
    pass


def _client_key() -> str:
    return settings.supabase_service_key or settings.supabase_key


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call reset_connection() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        DatabaseConnectionError: If connection fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "...",  # Log partial URL only
            service_role=bool(settings.supabase_service_key)
        )

        client = create_client(settings.supabase_url, _client_key())

        # Probe the items table so a bad key fails here, not on first load
        client.table(settings.items_table).select("id").limit(1).execute()

        logger.info("supabase_connected", status="success")

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise DatabaseConnectionError(f"Failed to connect to Supabase: {e}") from e


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: status plus item and slot row counts, or the error text
    """
    try:
        client = get_supabase_client()

        items = client.table(settings.items_table).select("id", count="exact").execute()
        slots = client.table(settings.slots_table).select("id", count="exact").execute()

        return {
            "status": "healthy",
            "items_count": items.count,
            "slots_count": slots.count
        }

    except Exception as e:
        logger.warning("database_health_check_failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e)
        }


def reset_connection():
    """
    Reset the cached database connection.

    Call this if connection becomes stale or after config changes.
    """
    get_supabase_client.cache_clear()
    logger.info("database_connection_reset")
