"""
Data models shared across the query pipeline.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class FieldInfo(BaseModel):
    """A single field inferred from a sampled document."""

    name: str
    type: str
    required: bool = True


class CollectionInfo(BaseModel):
    name: str
    fields: List[FieldInfo] = Field(default_factory=list)


class DatabaseInfo(BaseModel):
    name: str
    collections: List[CollectionInfo] = Field(default_factory=list)


class SchemaSnapshot(BaseModel):
    """
    Point-in-time capture of a cluster's collections and field types.

    `databases` holds collections without a database prefix. `collections`
    is the flat list with "db.collection" names, kept for lookups by
    qualified name.
    """

    databases: List[DatabaseInfo] = Field(default_factory=list)
    collections: List[CollectionInfo] = Field(default_factory=list)

    def to_prompt_dict(self) -> Dict[str, Dict[str, Dict[str, str]]]:
        """Nested `database -> collection -> field -> type` mapping."""
        return {
            database.name: {
                collection.name: {field.name: field.type for field in collection.fields}
                for collection in database.collections
            }
            for database in self.databases
        }

    def collections_by_database(self) -> Dict[str, List[str]]:
        return {
            database.name: [collection.name for collection in database.collections]
            for database in self.databases
        }


class QueryTranslation(BaseModel):
    kind: Literal["query"] = "query"
    query: str
    collection: Optional[str] = None
    operation: Optional[str] = None
    explanation: Optional[str] = None
    confidence: float = 0.5


class GreetingTranslation(BaseModel):
    kind: Literal["greeting"] = "greeting"
    message: str


class ErrorTranslation(BaseModel):
    kind: Literal["error"] = "error"
    reason: str


TranslationResult = Annotated[
    Union[QueryTranslation, GreetingTranslation, ErrorTranslation],
    Field(discriminator="kind"),
]


class ExecutionOutcome(BaseModel):
    """Result of running one generated query. Immutable once built."""

    query: str
    result: Any = None
    execution_time: Optional[float] = Field(default=None, alias="executionTime")
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ConversationTurn(BaseModel):
    id: str
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    query_result: Optional[ExecutionOutcome] = Field(default=None, alias="queryResult")

    model_config = ConfigDict(populate_by_name=True)


class QueryResponse(BaseModel):
    """Envelope returned for every answered question."""

    conversation_id: str = Field(alias="conversationId")
    message: ConversationTurn
    result: ExecutionOutcome

    model_config = ConfigDict(populate_by_name=True)


class QueryLogEntry(BaseModel):
    conversation_id: str = Field(alias="conversationId")
    user_query: str = Field(alias="userQuery")
    generated_query: str = Field(alias="generatedQuery")
    result: Any = None
    execution_time: Optional[float] = Field(default=None, alias="executionTime")
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True)
