"""
Supabase client factory.
"""
from supabase import AsyncClient, acreate_client

from .config import Settings
from .logging import get_logger

logger = get_logger(__name__)


async def create_supabase(settings: Settings) -> AsyncClient:
    """
    Create an async Supabase client with the service-role key.

    A fresh client is built per pipeline run; nothing is cached at module level.

    Raises:
        ConfigurationException: when the URL or service key is missing
    """
    settings.require("supabase_url", "supabase_service_key")
    client = await acreate_client(settings.supabase_url, settings.supabase_service_key)
    logger.debug("Supabase client created", url=settings.supabase_url)
    return client
