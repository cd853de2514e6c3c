import json
from typing import Any, Dict, List, NamedTuple, Optional, Protocol

from querygenie.models import SchemaSnapshot
from querygenie.utils.logger import get_logger
from querygenie.utils.system_prompts import QUERY_GENIE_SYSTEM_PROMPT

logger = get_logger(__name__)

INTROSPECTION_KEYWORDS = [
    "show all collections",
    "list collections",
    "what collections",
    "get database name",
    "database name",
    "show entire schema",
    "display all data",
    "show everything",
    "all collections",
    "collections in",
    "what's in my database",
    "what is in my database",
    "list all",
    "show schema",
    "database structure",
]

METADATA_NOTE = (
    "Schema is grouped by database. Each database contains collections. "
    "Collection names are shown without database prefix."
)


class IntrospectionSource(Protocol):
    """Anything that can list the live database names of the cluster."""

    def get_all_database_names(self) -> List[str]:
        ...


class PromptParts(NamedTuple):
    system_instruction: str
    user_instruction: str


def detect_introspection_query(question: str) -> bool:
    """True when the question asks about database structure rather than data."""
    question_lower = question.lower()
    return any(keyword in question_lower for keyword in INTROSPECTION_KEYWORDS)


def build_schema_context(
    question: str,
    schema: SchemaSnapshot,
    introspection_source: Optional[IntrospectionSource] = None,
) -> Dict[str, Any]:
    """Serialize the snapshot, adding live structure metadata for introspection questions."""
    schema_obj: Dict[str, Any] = schema.to_prompt_dict()

    if introspection_source is not None and detect_introspection_query(question):
        try:
            database_names = introspection_source.get_all_database_names()
            schema_obj["_metadata"] = {
                "availableDatabases": database_names,
                "collectionsByDatabase": schema.collections_by_database(),
                "note": METADATA_NOTE,
            }
            logger.info("Enhanced schema context for introspection: %d databases found", len(database_names))
        except Exception as e:
            logger.warning("Failed to fetch database names for introspection, using schema only: %s", e)

    return schema_obj


def build_prompt(
    question: str,
    schema: SchemaSnapshot,
    introspection_source: Optional[IntrospectionSource] = None,
) -> PromptParts:
    """
    Build the system and user instructions for one question.

    The user instruction is always two lines: the compact schema JSON
    prefixed with "Schema: ", then "User: <question>".
    """
    schema_obj = build_schema_context(question, schema, introspection_source)
    schema_string = json.dumps(schema_obj, ensure_ascii=False, default=str)
    user_instruction = f"Schema: {schema_string}\nUser: {question}"
    return PromptParts(QUERY_GENIE_SYSTEM_PROMPT, user_instruction)
