"""
Per-run pipeline context.

Everything a pipeline component talks to is carried here and passed
explicitly; nothing reads module-level clients.
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from flaneur.core.config import Settings
from flaneur.core.supabase import create_supabase
from flaneur.services.content_store import ContentStore
from flaneur.services.enrichment import EnrichmentInvoker
from flaneur.utils.dates import utcnow


@dataclass
class PipelineContext:
    """Collaborators and clocks for one pipeline run."""
    settings: Settings
    store: ContentStore
    invoker: Optional[EnrichmentInvoker] = None
    monotonic: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    now: Callable[[], datetime] = field(default=utcnow)

    @classmethod
    async def create(cls, settings: Settings, require_generation: bool = True) -> "PipelineContext":
        """
        Build a context with live Supabase and Gemini clients.

        Raises:
            ConfigurationException: a required credential is missing
        """
        invoker = None
        if require_generation or settings.gemini_api_key:
            invoker = EnrichmentInvoker.from_settings(settings)
        client = await create_supabase(settings)
        return cls(settings=settings, store=ContentStore(client), invoker=invoker)
