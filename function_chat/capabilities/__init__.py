"""
Concrete functions backed by Dataverse, Microsoft Graph and Azure
Cognitive Search.

``build_functions`` instantiates the functions enabled in configuration,
in the configured order, sharing one HTTP client and one token provider
per back-end.
"""

import logging

import httpx

from ..errors import ConfigurationError
from ..functions import Function
from ..llm_call import CompletionClient
from ..models import AppConfig
from .auth import create_token_provider
from .dataverse import DataverseClient
from .dataverse_functions import (
    GetEntitiesByDateFunction,
    GetEntityByIdFunction,
    QueryEntityViaPlaintextFunction,
)
from .documents import DocumentSearchClient, SearchDocumentsFunction
from .graph import GraphSearchClient, SearchEmailFunction, SearchGraphFunction

logger = logging.getLogger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"

DATAVERSE_FUNCTIONS = {
    GetEntityByIdFunction.name,
    GetEntitiesByDateFunction.name,
    QueryEntityViaPlaintextFunction.name,
}
GRAPH_FUNCTIONS = {SearchEmailFunction.name, SearchGraphFunction.name}
DOCUMENT_FUNCTIONS = {SearchDocumentsFunction.name}

AVAILABLE_FUNCTIONS = sorted(DATAVERSE_FUNCTIONS | GRAPH_FUNCTIONS | DOCUMENT_FUNCTIONS)


def build_functions(
    app_config: AppConfig,
    completion_client: CompletionClient,
    http_client: httpx.AsyncClient,
) -> list[Function]:
    """
    Instantiate the enabled functions.

    Raises:
        ConfigurationError: An enabled name is unknown, or its back-end
            is missing an endpoint or credentials.
    """
    enabled = app_config.functions.enabled
    unknown = [name for name in enabled if name not in AVAILABLE_FUNCTIONS]
    if unknown:
        raise ConfigurationError(
            f"Unknown function(s) enabled: {', '.join(unknown)}. "
            f"Available: {', '.join(AVAILABLE_FUNCTIONS)}"
        )

    dataverse = None
    if DATAVERSE_FUNCTIONS.intersection(enabled):
        if not app_config.dataverse.base_url:
            raise ConfigurationError("dataverse.base_url is required for Dataverse functions")
        dataverse = DataverseClient(
            app_config.dataverse,
            http_client,
            create_token_provider(
                app_config.dataverse.auth,
                http_client,
                scope=f"{app_config.dataverse.base_url}/.default",
                backend="Dataverse",
            ),
        )

    graph = None
    if GRAPH_FUNCTIONS.intersection(enabled):
        graph = GraphSearchClient(
            app_config.graph,
            http_client,
            create_token_provider(app_config.graph.auth, http_client, scope=GRAPH_SCOPE, backend="Graph"),
        )

    documents = None
    if DOCUMENT_FUNCTIONS.intersection(enabled):
        search = app_config.document_search
        if not (search.endpoint and search.index_name and search.api_key):
            raise ConfigurationError(
                "document_search.endpoint, index_name and api_key are required for search_documents"
            )
        documents = DocumentSearchClient(search, http_client)

    functions: list[Function] = []
    for name in enabled:
        if name == GetEntityByIdFunction.name:
            functions.append(GetEntityByIdFunction(dataverse))
        elif name == GetEntitiesByDateFunction.name:
            functions.append(GetEntitiesByDateFunction(dataverse))
        elif name == QueryEntityViaPlaintextFunction.name:
            functions.append(QueryEntityViaPlaintextFunction(dataverse, completion_client))
        elif name == SearchEmailFunction.name:
            functions.append(SearchEmailFunction(graph))
        elif name == SearchGraphFunction.name:
            functions.append(SearchGraphFunction(graph))
        elif name == SearchDocumentsFunction.name:
            functions.append(SearchDocumentsFunction(documents))

    logger.info(f"Built {len(functions)} function(s): {[f.name for f in functions]}")
    return functions


__all__ = ["AVAILABLE_FUNCTIONS", "build_functions"]
