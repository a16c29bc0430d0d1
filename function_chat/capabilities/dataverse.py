"""
Dataverse Web API and relevancy search client.

Every request carries a fresh bearer token from the configured
``TokenProvider``. HTTP errors propagate as ``httpx.HTTPStatusError``; the
calling function turns them into a failure result.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..models import DataverseConfig
from .auth import TokenProvider

logger = logging.getLogger(__name__)

ODATA_HEADERS = {
    "OData-MaxVersion": "4.0",
    "OData-Version": "4.0",
    "Accept": "application/json",
}


class DateField(str, Enum):
    """Datetime columns that date-range queries can filter on."""

    CREATED_ON = "createdon"
    MODIFIED_ON = "modifiedon"
    WINDOW_START = "msdyn_datewindowstart"
    WINDOW_END = "msdyn_datewindowend"


class RelevancySearchQuery(BaseModel):
    """Structured relevancy search request, usually extracted from free text."""

    model_config = ConfigDict(populate_by_name=True)

    search_text: str = Field(alias="relevancy_search_query", min_length=1)
    date_field_name: Optional[str] = None
    not_before_utc: Optional[datetime] = None
    not_after_utc: Optional[datetime] = None
    entity_name: Optional[str] = None


def format_odata_datetime(value: datetime) -> str:
    """UTC ISO-8601 literal for an OData ``$filter``; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_date_filter(
    field_name: Optional[str],
    not_before: Optional[datetime],
    not_after: Optional[datetime],
) -> Optional[str]:
    """Exclusive range filter on ``field_name``, or None when there is nothing to filter."""
    if not field_name:
        return None
    clauses = []
    if not_before is not None:
        clauses.append(f"{field_name} gt {format_odata_datetime(not_before)}")
    if not_after is not None:
        clauses.append(f"{field_name} lt {format_odata_datetime(not_after)}")
    return " and ".join(clauses) or None


def remove_null_values(record: dict[str, Any]) -> dict[str, Any]:
    """Drop null-valued columns; they make up most of a Dataverse record."""
    return {key: value for key, value in record.items() if value is not None}


class DataverseClient:
    """Async access to one Dataverse environment."""

    def __init__(
        self,
        config: DataverseConfig,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider,
    ):
        self.config = config
        self._http = http_client
        self._tokens = token_provider

    @property
    def data_url(self) -> str:
        return f"{self.config.base_url}/api/data/{self.config.api_version}"

    @property
    def search_url(self) -> str:
        return f"{self.config.base_url}/api/search/v1.0/query"

    async def _headers(self) -> dict[str, str]:
        token = await self._tokens.get_token()
        return {**ODATA_HEADERS, "Authorization": f"Bearer {token}"}

    async def get_entities_by_date(
        self,
        entity_set: str,
        field: DateField,
        not_before: Optional[datetime] = None,
        not_after: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Records of ``entity_set`` whose ``field`` lies inside the range."""
        params: dict[str, Any] = {"$top": limit or self.config.top}
        date_filter = build_date_filter(field.value, not_before, not_after)
        if date_filter:
            params["$filter"] = date_filter

        url = f"{self.data_url}/{entity_set}"
        logger.info(f"Querying {url} with {params}")
        response = await self._http.get(
            url, params=params, headers=await self._headers(), timeout=self.config.timeout
        )
        response.raise_for_status()
        return response.json().get("value", [])

    async def get_entity_by_id(self, entity_set: str, entity_id: UUID) -> dict[str, Any]:
        """Single record by primary key."""
        url = f"{self.data_url}/{entity_set}({entity_id})"
        logger.info(f"Fetching {url}")
        response = await self._http.get(
            url, headers=await self._headers(), timeout=self.config.timeout
        )
        response.raise_for_status()
        return response.json()

    async def relevancy_search(
        self, query: RelevancySearchQuery, match_all: bool = True
    ) -> list[dict[str, Any]]:
        """
        Run a relevancy (full-text) search.

        Args:
            query: Keyword text plus optional date range and entity filter.
            match_all: ``searchmode`` "all" when True, "any" otherwise.

        Returns:
            The ``value`` list of the search response, best match first.
        """
        body: dict[str, Any] = {
            "search": query.search_text,
            "top": self.config.top,
            "searchmode": "all" if match_all else "any",
        }
        date_filter = build_date_filter(
            query.date_field_name, query.not_before_utc, query.not_after_utc
        )
        if date_filter:
            body["filter"] = date_filter
        if query.entity_name:
            body["entities"] = [query.entity_name]

        logger.info(f"Relevancy search: {body}")
        response = await self._http.post(
            self.search_url, json=body, headers=await self._headers(), timeout=self.config.timeout
        )
        response.raise_for_status()
        return response.json().get("value", [])
