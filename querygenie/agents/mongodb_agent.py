import uuid
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.database import Database

from querygenie.config import Settings, settings as default_settings
from querygenie.errors import (
    DatabaseUnavailableError,
    PersistenceError,
    ServiceUnavailableError,
    TranslationError,
    ValidationError,
)
from querygenie.models import (
    ConversationTurn,
    ErrorTranslation,
    ExecutionOutcome,
    GreetingTranslation,
    QueryResponse,
    SchemaSnapshot,
)
from querygenie.services.db_service import QueryExecutor
from querygenie.services.history_service import HistoryService
from querygenie.services.schema_service import SchemaCache, SchemaService
from querygenie.services.translator import GREETING_MESSAGE, QueryTranslator, is_greeting
from querygenie.utils.logger import get_logger
from querygenie.utils.response_formatter import format_query_result
from querygenie.utils.validators import sanitize_query, validate_natural_query

logger = get_logger(__name__)

NEW_CONVERSATION_PREFIX = "Hello! 👋 "
DEFAULT_EXPLANATION = "Query executed successfully"
EMPTY_QUERY_MESSAGE = "AI did not generate a valid query. Please try rephrasing your question."


def generate_id() -> str:
    return uuid.uuid4().hex


class QueryGenieAgent:
    """
    Natural Language Agent for MongoDB queries.

    Runs one question through the pipeline: schema snapshot, prompt,
    translation, execution and result shaping. Assigns conversation and
    message identity and assembles the response envelope.
    """

    def __init__(
        self,
        schema_service: SchemaService,
        translator: QueryTranslator,
        executor: QueryExecutor,
        history: Optional[HistoryService] = None,
        history_enabled: bool = False,
        max_query_length: int = 1000,
        client: Optional[MongoClient] = None,
    ):
        self.schema_service = schema_service
        self.translator = translator
        self.executor = executor
        self.history = history
        self.history_enabled = history_enabled and history is not None
        self.max_query_length = max_query_length
        self.client = client

    @classmethod
    def from_settings(
        cls,
        client: Optional[MongoClient],
        database: Optional[Database],
        settings: Optional[Settings] = None,
    ) -> "QueryGenieAgent":
        """Wire every pipeline stage from configuration."""
        settings = settings or default_settings

        schema_service = SchemaService(
            client,
            database,
            cache=SchemaCache(ttl_seconds=settings.schema_cache_ttl_seconds),
            save_timeout=settings.save_timeout_seconds,
        )
        translator = QueryTranslator.from_settings(settings, introspection_source=schema_service)
        executor = QueryExecutor(
            client,
            database,
            max_documents=settings.max_documents,
            max_result_size=settings.max_result_size,
        )
        history = HistoryService(database, save_timeout=settings.save_timeout_seconds)

        return cls(
            schema_service,
            translator,
            executor,
            history=history,
            history_enabled=settings.history_enabled,
            max_query_length=settings.max_query_length,
            client=client,
        )

    @property
    def llm_metadata(self) -> Dict[str, Any]:
        return self.translator.llm_metadata

    @property
    def database_name(self) -> Optional[str]:
        database = self.schema_service.db
        return database.name if database is not None else None

    def process_query(self, natural_query: str, conversation_id: Optional[str] = None) -> QueryResponse:
        """
        Answer one question.

        Raises ValidationError for an unusable question and
        ServiceUnavailableError when no model is configured. Every other
        failure is reported inside the returned envelope.
        """
        is_valid, error_msg = validate_natural_query(natural_query, self.max_query_length)
        if not is_valid:
            raise ValidationError(error_msg)

        question = sanitize_query(natural_query)
        if not question:
            raise ValidationError("Query cannot be empty")

        is_new_conversation = not conversation_id
        conversation_id = conversation_id or generate_id()

        if is_new_conversation and is_greeting(question):
            logger.info("Greeting detected, skipping translation")
            return self._envelope(conversation_id, GREETING_MESSAGE, ExecutionOutcome(query=""))

        if not self.translator.is_available():
            raise ServiceUnavailableError("AI service is not available. Check the LLM API key.")

        schema = self._load_schema()

        try:
            translation = self.translator.translate(question, schema)
        except TranslationError as e:
            return self._envelope(conversation_id, f"Error: {e.message}", ExecutionOutcome(query=""))

        if isinstance(translation, GreetingTranslation):
            return self._envelope(conversation_id, translation.message, ExecutionOutcome(query=""))

        if isinstance(translation, ErrorTranslation):
            return self._envelope(conversation_id, translation.reason, ExecutionOutcome(query=""))

        if not translation.query.strip():
            return self._envelope(conversation_id, EMPTY_QUERY_MESSAGE, ExecutionOutcome(query=""))

        raw = self.executor.execute(translation.query)
        outcome = format_query_result(raw.result, raw.query, raw.execution_time, raw.error)

        if outcome.error:
            content = f"Error: {outcome.error}"
        else:
            content = translation.explanation or DEFAULT_EXPLANATION
        if is_new_conversation:
            content = NEW_CONVERSATION_PREFIX + content

        self._record(conversation_id, question, outcome)
        return self._envelope(conversation_id, content, outcome)

    def _load_schema(self) -> SchemaSnapshot:
        try:
            return self.schema_service.get_schema()
        except Exception as e:
            # The model can still answer introspection questions without a schema
            logger.warning("Schema unavailable, continuing with empty schema: %s", e)
            return SchemaSnapshot()

    def _record(self, conversation_id: str, question: str, outcome: ExecutionOutcome) -> None:
        if not self.history_enabled:
            return
        try:
            self.history.save_query(
                conversation_id,
                question,
                outcome.query,
                outcome.result,
                execution_time=outcome.execution_time,
                error=outcome.error,
            )
        except (PersistenceError, DatabaseUnavailableError) as e:
            logger.warning("Failed to save query history: %s", e)

    @staticmethod
    def _envelope(conversation_id: str, content: str, outcome: ExecutionOutcome) -> QueryResponse:
        message = ConversationTurn(
            id=generate_id(),
            role="assistant",
            content=content,
            query_result=outcome,
        )
        return QueryResponse(conversation_id=conversation_id, message=message, result=outcome)

    def get_conversation(self, conversation_id: str) -> List[ConversationTurn]:
        """Rebuild the turns of a conversation from the query log."""
        if self.history is None:
            return []

        turns = []
        for log in self.history.get_conversation_history(conversation_id):
            outcome = ExecutionOutcome(
                query=log.get("generatedQuery", ""),
                result=log.get("result"),
                execution_time=log.get("executionTime"),
                error=log.get("error"),
            )
            turns.append(ConversationTurn(
                id=str(log.get("_id", generate_id())),
                role="assistant",
                content=log.get("userQuery", ""),
                timestamp=log["timestamp"],
                query_result=outcome,
            ))
        return turns

    def delete_conversation(self, conversation_id: str) -> int:
        if self.history is None:
            return 0
        return self.history.delete_conversation(conversation_id)

    def close(self):
        """Close MongoDB connection"""
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")
