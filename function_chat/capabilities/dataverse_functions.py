"""
Dataverse-backed functions: lookup by id, date-range query and
plain-English relevancy search.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator

from ..functions import Function, FunctionBuilder, FunctionResult, FunctionSchema, ParameterType
from ..llm_call import CompletionClient
from ..orchestration.prompt import render_system_prompt
from ..session_log import LoggerLike
from .dataverse import DataverseClient, DateField, RelevancySearchQuery, remove_null_values

ENTITY_SETS = ("msdyn_workorders", "bookableresourcebookings")

DATE_FIELDS = {
    "date_modified": DateField.MODIFIED_ON,
    "date_created": DateField.CREATED_ON,
    "date_start": DateField.WINDOW_START,
    "date_end": DateField.WINDOW_END,
}

# The extraction model does better with short entity names; the search
# API needs the logical names.
SEARCH_ENTITY_NAMES = {"work_order": "msdyn_workorder"}


def _empty_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class GetEntityByIdArguments(BaseModel):
    entity_id: str
    entity_type: Literal["msdyn_workorders", "bookableresourcebookings"]


class GetEntityByIdFunction(Function[GetEntityByIdArguments]):
    """Fetch one record as JSON given its GUID."""

    name = "get_entity_by_guid"
    arguments_model = GetEntityByIdArguments

    def __init__(self, dataverse: DataverseClient):
        self._dataverse = dataverse

    def build_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.name)
            .with_description("Retrieve an entity as json, given a guid of its ID.")
            .with_parameter("entity_id", ParameterType.STRING, "The guid ID of the entity", required=True)
            .with_enum_parameter("entity_type", "The type of entity to query", ENTITY_SETS, required=True)
            .build()
        )

    async def run(self, arguments: GetEntityByIdArguments, log: LoggerLike) -> FunctionResult:
        try:
            entity_id = UUID(arguments.entity_id)
        except ValueError:
            return FunctionResult.failure(
                "The given ID was not a valid guid. This function can only be called "
                "on valid guids. Try searching a different way."
            )

        log.info("Fetching %s(%s)", arguments.entity_type, entity_id)
        entity = await self._dataverse.get_entity_by_id(arguments.entity_type, entity_id)
        return FunctionResult.success(remove_null_values(entity))


class GetEntitiesByDateArguments(BaseModel):
    entity_name: Literal["msdyn_workorders", "bookableresourcebookings"]
    date_field_name: Literal["date_modified", "date_created", "date_start", "date_end"]
    not_before_utc: Optional[datetime] = None
    not_after_utc: Optional[datetime] = None

    @field_validator("not_before_utc", "not_after_utc", mode="before")
    @classmethod
    def blank_dates_to_none(cls, value):
        return _empty_to_none(value)

    @model_validator(mode="after")
    def require_a_bound(self):
        if self.not_before_utc is None and self.not_after_utc is None:
            raise ValueError("at least one of not_before_utc or not_after_utc is required")
        return self


class GetEntitiesByDateFunction(Function[GetEntitiesByDateArguments]):
    """Records whose chosen date column falls inside a time range."""

    name = "query_entities_by_date"
    arguments_model = GetEntitiesByDateArguments

    def __init__(self, dataverse: DataverseClient):
        self._dataverse = dataverse

    def build_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.name)
            .with_description("Query entities by a range of time")
            .with_enum_parameter("entity_name", "The type of entity to query for", ENTITY_SETS, required=True)
            .with_parameter(
                "not_before_utc",
                ParameterType.STRING,
                "Exclude results before this date. E.x. '1997-07-16T19:20Z'. Required if not_after_utc is empty.",
            )
            .with_parameter(
                "not_after_utc",
                ParameterType.STRING,
                "Exclude results after this date. E.x. '1997-07-16T19:20Z'. Required if not_before_utc is empty.",
            )
            .with_enum_parameter(
                "date_field_name",
                "The datetime field name to compare against",
                DATE_FIELDS.keys(),
                required=True,
            )
            .build()
        )

    async def run(self, arguments: GetEntitiesByDateArguments, log: LoggerLike) -> FunctionResult:
        records = await self._dataverse.get_entities_by_date(
            arguments.entity_name,
            DATE_FIELDS[arguments.date_field_name],
            not_before=arguments.not_before_utc,
            not_after=arguments.not_after_utc,
        )
        log.info("%s: %d record(s) in range", arguments.entity_name, len(records))
        return FunctionResult.success([remove_null_values(r) for r in records])


class PlainTextQueryArguments(BaseModel):
    plain_text_query: str


class QueryEntityViaPlaintextFunction(Function[PlainTextQueryArguments]):
    """
    Relevancy search driven by a plain-English query.

    The completion client first turns the free text into a structured
    ``RelevancySearchQuery`` through a forced function call. The search runs
    with every keyword required and is retried once matching any keyword
    when nothing comes back.
    """

    name = "query_entity_via_plaintext"
    arguments_model = PlainTextQueryArguments

    EXTRACTION_FUNCTION = "query_dataverse_relevancy_api"

    EXTRACTION_PROMPT = (
        "[TIMESTAMP UTC: {{timestamp}}]\n"
        "You are an assistant that can query Dataverse, given plaintext user queries.\n"
        "An example of invoking the function query_dataverse_relevancy_api is provided below.\n\n"
        "EXAMPLE:\n"
        "user input: 'unscheduled work orders for Contoso Coffee Co account'\n"
        "expected relevancy_search_query: 'Contoso Coffee Co unscheduled'\n\n"
        "The next example demonstrates the optional date filtering:\n\n"
        "EXAMPLE:\n"
        "user input: 'accounts in atlanta created in the last two weeks'\n"
        "expected relevancy_search_query: 'Atlanta'\n"
        "expected not_before_utc: '{two_weeks_ago}'\n"
        "expected date_field_name: 'createdon'"
    )

    def __init__(
        self,
        dataverse: DataverseClient,
        completion_client: CompletionClient,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._dataverse = dataverse
        self._completion = completion_client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def build_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.name)
            .with_description("Search Dataverse using a query in plain English")
            .with_parameter("plain_text_query", ParameterType.STRING, "The query, in plain English text", required=True)
            .build()
        )

    def build_extraction_schema(self) -> FunctionSchema:
        return (
            FunctionBuilder(self.EXTRACTION_FUNCTION)
            .with_description("Search using the Dataverse Relevancy API, a Lucene-based index search")
            .with_parameter(
                "relevancy_search_query",
                ParameterType.STRING,
                "The keyword query text. Should be short and simple. Must not include entity names, only values.",
                required=True,
            )
            .with_parameter(
                "not_before_utc",
                ParameterType.STRING,
                "Optional. Exclude results before this date. E.x. '1997-07-16T19:20Z'",
            )
            .with_parameter(
                "not_after_utc",
                ParameterType.STRING,
                "Optional. Exclude results after this date. E.x. '1997-07-16T19:20Z'",
            )
            .with_enum_parameter(
                "date_field_name",
                "The datetime field name to compare against. Required when not_before_utc or not_after_utc is set.",
                [DateField.CREATED_ON.value, DateField.MODIFIED_ON.value],
            )
            .with_enum_parameter(
                "entity_name", "Limit results to a particular entity type", list(SEARCH_ENTITY_NAMES)
            )
            .build()
        )

    async def generate_query(self, plain_text_query: str) -> RelevancySearchQuery:
        """Translate free text into a relevancy search query."""
        now = self._clock()
        two_weeks_ago = (now - timedelta(days=14)).strftime("%Y-%m-%dT%H:%MZ")
        system_message = render_system_prompt(
            self.EXTRACTION_PROMPT.replace("{two_weeks_ago}", two_weeks_ago), now=now
        )

        raw_arguments = await self._completion.get_single_function_completion(
            self.build_extraction_schema(), plain_text_query, system_message
        )
        query = RelevancySearchQuery.model_validate_json(raw_arguments)
        if query.entity_name in SEARCH_ENTITY_NAMES:
            query.entity_name = SEARCH_ENTITY_NAMES[query.entity_name]
        return query

    async def run(self, arguments: PlainTextQueryArguments, log: LoggerLike) -> FunctionResult:
        query = await self.generate_query(arguments.plain_text_query)
        log.info("Relevancy search query: %s", query.search_text)

        records = await self._dataverse.relevancy_search(query, match_all=True)
        if not records:
            log.info("No results, broadening search to match any keyword")
            records = await self._dataverse.relevancy_search(query, match_all=False)

        if not records:
            return FunctionResult.failure(
                "No records matched the query", query=query.search_text
            )
        return FunctionResult.success([remove_null_values(r) for r in records])
