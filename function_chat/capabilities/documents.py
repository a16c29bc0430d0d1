"""
Reference-document search over an Azure Cognitive Search index using
semantic ranking with extractive answers and captions.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from ..functions import Function, FunctionBuilder, FunctionResult, FunctionSchema, ParameterType
from ..models import DocumentSearchConfig
from ..session_log import LoggerLike

logger = logging.getLogger(__name__)


class SemanticSearchResponse(BaseModel):
    likely_answers: list[str] = Field(default_factory=list)
    relevant_excerpts: list[str] = Field(default_factory=list)
    documents: list[dict[str, str]] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.likely_answers or self.relevant_excerpts or self.documents)


class DocumentSearchClient:
    """Async client for one search index."""

    def __init__(self, config: DocumentSearchConfig, http_client: httpx.AsyncClient):
        self.config = config
        self._http = http_client

    @property
    def search_url(self) -> str:
        return f"{self.config.endpoint}/indexes/{self.config.index_name}/docs/search"

    async def semantic_search(self, query: str) -> SemanticSearchResponse:
        body = {
            "search": query,
            "queryType": "semantic",
            "semanticConfiguration": self.config.semantic_configuration,
            "answers": f"extractive|count-{self.config.top}",
            "captions": "extractive",
            "top": self.config.top,
        }
        response = await self._http.post(
            self.search_url,
            params={"api-version": self.config.api_version},
            json=body,
            headers={"api-key": self.config.api_key},
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        return self._parse(response.json())

    @staticmethod
    def _parse(data: dict[str, Any]) -> SemanticSearchResponse:
        result = SemanticSearchResponse()
        for answer in data.get("@search.answers") or []:
            text = answer.get("text")
            if text:
                result.likely_answers.append(text)

        for hit in data.get("value") or []:
            for caption in hit.get("@search.captions") or []:
                text = caption.get("text")
                if text:
                    result.relevant_excerpts.append(text)
            uri = hit.get("documentUri")
            if uri:
                result.documents.append({"title": hit.get("title") or "", "uri": uri})
        return result


class DocumentQuestionArguments(BaseModel):
    plain_text_question: str


class SearchDocumentsFunction(Function[DocumentQuestionArguments]):
    """Answers from manuals, instruction booklets and technical briefs."""

    name = "search_documents"
    arguments_model = DocumentQuestionArguments

    def __init__(self, search_client: DocumentSearchClient):
        self._search = search_client

    def build_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.name)
            .with_description(
                "Search reference documents (manuals, instruction booklets, technical briefs) "
                "using a query in plain English"
            )
            .with_parameter(
                "plain_text_question", ParameterType.STRING, "The question, in plain English text", required=True
            )
            .build()
        )

    async def run(self, arguments: DocumentQuestionArguments, log: LoggerLike) -> FunctionResult:
        response = await self._search.semantic_search(arguments.plain_text_question)
        log.info(
            "Document search: %d answer(s), %d excerpt(s)",
            len(response.likely_answers),
            len(response.relevant_excerpts),
        )
        if response.is_empty:
            return FunctionResult.failure("No reference documents matched the question")
        return FunctionResult.success(response)
