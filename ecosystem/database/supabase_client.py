import logging
from typing import Optional
from supabase import create_client, Client
from ecosystem.config import settings

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Process-wide Supabase clients.

    The anon client serves request traffic under RLS; the service-role client
    is only used by the catalog seed script, which writes global roles.
    """
    _client: Optional[Client] = None
    _service_client: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            if not settings.supabase_url or not settings.supabase_key:
                raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set")
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        if cls._service_client is None:
            if not settings.supabase_service_role_key:
                logger.warning("SUPABASE_SERVICE_ROLE_KEY not set; seeding with the anon client")
                return cls.get_client()
            cls._service_client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        return cls._service_client

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def catalog_reachable(supabase: Client) -> bool:
    """True when the permissions table answers a one-row read"""
    try:
        supabase.table("permissions").select("id").limit(1).execute()
        return True
    except Exception as e:
        logger.error(f"Permission catalog unreachable: {e}")
        return False
