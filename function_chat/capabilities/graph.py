"""
Microsoft Graph search over mail and drive items, and the functions that
expose it.

Message hits only carry ids and a preview, so each hit is fetched in full
concurrently once the search returns.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Literal, Optional

import httpx
from pydantic import BaseModel

from ..functions import Function, FunctionBuilder, FunctionResult, FunctionSchema, ParameterType
from ..models import GraphConfig
from ..session_log import LoggerLike
from .auth import TokenProvider

logger = logging.getLogger(__name__)

DOCUMENTS_SOURCE = "documents"
EMAILS_SOURCE = "emails"


class EmailContent(BaseModel):
    subject: str = ""
    sent_date: Optional[datetime] = None
    body: str = ""


class DocumentHit(BaseModel):
    name: str = ""
    web_url: str = ""
    summary: str = ""
    last_modified: Optional[datetime] = None


class GraphSearchClient:
    """Async client for the Graph ``/search/query`` endpoint."""

    def __init__(
        self,
        config: GraphConfig,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider,
    ):
        self.config = config
        self._http = http_client
        self._tokens = token_provider

    async def _headers(self, **extra: str) -> dict[str, str]:
        token = await self._tokens.get_token()
        return {"Authorization": f"Bearer {token}", "Accept": "application/json", **extra}

    async def _search(self, entity_type: str, query: str) -> list[dict[str, Any]]:
        """Hits of one entity type, best first."""
        request: dict[str, Any] = {
            "entityTypes": [entity_type],
            "query": {"queryString": query},
            "from": 0,
            "size": self.config.result_size,
        }
        if entity_type == "message":
            request["enableTopResults"] = True
        if self.config.region:
            request["region"] = self.config.region

        response = await self._http.post(
            f"{self.config.base_url}/search/query",
            json={"requests": [request]},
            headers=await self._headers(),
            timeout=self.config.timeout,
        )
        response.raise_for_status()

        hits = []
        for result in response.json().get("value", [])[:1]:
            for container in result.get("hitsContainers") or []:
                hits.extend(container.get("hits") or [])
        return hits

    async def get_email(self, message_id: str) -> EmailContent:
        response = await self._http.get(
            f"{self.config.base_url}/{self.config.mailbox}/messages/{message_id}",
            params={"$select": "subject,body,bodyPreview,uniqueBody,sentDateTime"},
            headers=await self._headers(Prefer='outlook.body-content-type="text"'),
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        data = response.json()
        return EmailContent(
            subject=data.get("subject") or "",
            sent_date=data.get("sentDateTime"),
            body=(data.get("body") or {}).get("content") or "",
        )

    async def search_emails(self, query: str) -> list[EmailContent]:
        """Search mail and fetch every matching message concurrently."""
        hits = await self._search("message", query)
        message_ids = [hit["hitId"] for hit in hits if hit.get("hitId")]
        logger.debug(f"Email search '{query}': {len(message_ids)} hit(s)")
        if not message_ids:
            return []
        return list(await asyncio.gather(*(self.get_email(i) for i in message_ids)))

    async def search_documents(self, query: str) -> list[DocumentHit]:
        """Search OneDrive and SharePoint drive items."""
        hits = await self._search("driveItem", query)
        logger.debug(f"Document search '{query}': {len(hits)} hit(s)")
        documents = []
        for hit in hits:
            resource = hit.get("resource") or {}
            documents.append(
                DocumentHit(
                    name=resource.get("name") or "",
                    web_url=resource.get("webUrl") or "",
                    summary=hit.get("summary") or "",
                    last_modified=resource.get("lastModifiedDateTime"),
                )
            )
        return documents


class EmailSearchArguments(BaseModel):
    query: str


class SearchEmailFunction(Function[EmailSearchArguments]):
    """Outlook search returning subject, sent date and body of each hit."""

    name = "search_email"
    arguments_model = EmailSearchArguments

    def __init__(self, graph: GraphSearchClient):
        self._graph = graph

    def build_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.name)
            .with_description("Search Outlook for emails given a query string")
            .with_parameter("query", ParameterType.STRING, "The query string", required=True)
            .build()
        )

    async def run(self, arguments: EmailSearchArguments, log: LoggerLike) -> FunctionResult:
        emails = await self._graph.search_emails(arguments.query)
        for email in emails:
            log.debug("Email: %s (%s)", email.subject, email.sent_date)
        return FunctionResult.success({"emails": emails})


class GraphSearchArguments(BaseModel):
    query: str
    preferred_source: Literal["documents", "emails"]


class SearchGraphFunction(Function[GraphSearchArguments]):
    """
    Search documents and emails at the same time.

    Both sources are always queried; the preferred one is listed first.
    A source that fails is reported under ``errors`` as long as the other
    one succeeded.
    """

    name = "search_graph"
    arguments_model = GraphSearchArguments

    def __init__(self, graph: GraphSearchClient):
        self._graph = graph

    def build_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.name)
            .with_description("Search Microsoft Graph for documents and emails, given a query string")
            .with_parameter(
                "query",
                ParameterType.STRING,
                "The short, terse query string, no more than 3 words",
                required=True,
            )
            .with_enum_parameter(
                "preferred_source",
                "An enum; the data source most likely to have the best result",
                [DOCUMENTS_SOURCE, EMAILS_SOURCE],
                required=True,
            )
            .build()
        )

    async def run(self, arguments: GraphSearchArguments, log: LoggerLike) -> FunctionResult:
        documents, emails = await asyncio.gather(
            self._graph.search_documents(arguments.query),
            self._graph.search_emails(arguments.query),
            return_exceptions=True,
        )
        outcomes = {DOCUMENTS_SOURCE: documents, EMAILS_SOURCE: emails}

        for outcome in outcomes.values():
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
        errors = {
            source: str(outcome)
            for source, outcome in outcomes.items()
            if isinstance(outcome, Exception)
        }
        if len(errors) == len(outcomes):
            raise outcomes[arguments.preferred_source]

        order = [arguments.preferred_source] + [s for s in outcomes if s != arguments.preferred_source]
        payload: dict[str, Any] = {"preferred_source": arguments.preferred_source}
        for source in order:
            if source not in errors:
                payload[source] = outcomes[source]
        if errors:
            for source, message in errors.items():
                log.warning("Graph %s search failed: %s", source, message)
            payload["errors"] = errors
        return FunctionResult.success(payload)
