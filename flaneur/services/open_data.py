"""
NYC Open Data (Socrata) client.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

from flaneur.core.config import Settings
from flaneur.core.logging import get_logger

logger = get_logger(__name__)

OPEN_RESTAURANTS_DATASET = "pitm-atqc"
OPEN_RESTAURANTS_PAGE_SIZE = 500


class OpenDataClient:
    """Query Socrata datasets with SoQL parameters."""

    def __init__(
        self,
        base_url: str = "https://data.cityofnewyork.us/resource",
        app_token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.app_token = app_token
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenDataClient":
        return cls(settings.open_data_base_url, app_token=settings.open_data_app_token)

    async def query(self, dataset: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """
        Fetch rows of one dataset.

        HTTP errors propagate to the caller.
        """
        url = f"{self.base_url}/{dataset}.json"
        headers = {"Accept": "application/json"}
        if self.app_token:
            headers["X-App-Token"] = self.app_token

        if self._client is not None:
            response = await self._client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=headers)
        response.raise_for_status()

        rows = response.json()
        logger.info("Open data query completed", dataset=dataset, rows=len(rows))
        return rows

    async def open_restaurant_applications(
        self, since: datetime, zips: Sequence[str]
    ) -> List[Dict[str, Any]]:
        """Recent approved or requested outdoor seating applications in the given zips."""
        zip_filter = ",".join(f"'{z}'" for z in sorted(set(zips)))
        where = " AND ".join([
            f"time_submitted >= '{since.strftime('%Y-%m-%dT%H:%M:%S')}'",
            f"zip IN ({zip_filter})",
            "(approved_for_sidewalk_seating = 'yes' OR approved_for_roadway_seating = 'yes' "
            "OR seating_interest_sidewalk = 'yes' OR seating_interest_roadway = 'yes')",
        ])
        return await self.query(OPEN_RESTAURANTS_DATASET, {
            "$where": where,
            "$order": "time_submitted DESC",
            "$limit": str(OPEN_RESTAURANTS_PAGE_SIZE),
        })
