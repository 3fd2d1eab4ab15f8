"""
Candidate selection: which briefs and articles still need enrichment.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Sequence, Union

from flaneur.core.logging import get_logger
from flaneur.schemas.content import SELF_ENRICHING_ARTICLE_TYPES, Article, Brief
from flaneur.services.content_store import ContentStore
from flaneur.utils.dates import utcnow

logger = get_logger(__name__)


class WorkKind(str, Enum):
    BRIEF = "brief"
    ARTICLE = "article"


WorkItem = Union[Brief, Article]


class CandidateSelector:
    """
    Pure reads of unprocessed work items, newest first.

    An item is unprocessed while its ``enriched_at`` is unset and it falls
    inside the lookback window of its kind. A ``test_id`` bypasses both the
    window and the limit, never the article-type exclusion, and yields
    exactly that item or nothing.
    """

    def __init__(
        self,
        store: ContentStore,
        clock: Callable[[], datetime] = utcnow,
        excluded_article_types: Sequence[str] = SELF_ENRICHING_ARTICLE_TYPES,
    ):
        self.store = store
        self.clock = clock
        self.excluded_article_types = tuple(excluded_article_types)

    async def select(
        self,
        kind: WorkKind,
        *,
        lookback: timedelta,
        limit: int,
        test_id: Optional[str] = None,
    ) -> List[WorkItem]:
        if test_id:
            item = await self._fetch_one(kind, test_id)
            logger.info("Selected test item", kind=kind.value, test_id=test_id, found=item is not None)
            return [item] if item is not None else []

        since = self.clock() - lookback
        if kind is WorkKind.BRIEF:
            items = await self.store.select_unenriched_briefs(since=since, limit=limit)
        else:
            items = await self.store.select_unenriched_articles(
                since=since, limit=limit, excluded_types=self.excluded_article_types
            )
        logger.info("Selected candidates", kind=kind.value, count=len(items), since=since.isoformat())
        return items

    async def _fetch_one(self, kind: WorkKind, item_id: str) -> Optional[WorkItem]:
        if kind is WorkKind.BRIEF:
            return await self.store.get_brief(item_id)
        article = await self.store.get_article(item_id)
        if article is not None and article.article_type in self.excluded_article_types:
            logger.info("Test item is self-enriching, skipping", test_id=item_id, article_type=article.article_type)
            return None
        return article
