import re
import time
from datetime import date, datetime
from itertools import islice
from typing import Any, Dict, List, Optional, Tuple

from bson import Decimal128, ObjectId, json_util
from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from querygenie.errors import DatabaseUnavailableError, ExecutionError, UnsafeQueryError
from querygenie.models import ExecutionOutcome
from querygenie.utils.literal_parser import LiteralParseError, parse_js_literal
from querygenie.utils.logger import get_logger
from querygenie.utils.schema_parser import list_qualified_collection_names, list_user_database_names
from querygenie.utils.validators import UNSAFE_QUERY_MESSAGE, strip_comments, validate_query_safety

logger = get_logger(__name__)

GET_NAME_QUERY = "db.getName()"
GET_COLLECTION_NAMES_QUERY = "db.getCollectionNames()"
GET_DB_NAMES_QUERY = "db.getMongo().getDBNames()"
GET_DB_NAMES_SHORT_QUERY = "getDBNames()"

SUPPORTED_OPERATIONS = ("find", "findOne", "aggregate", "countDocuments")
WRITE_STAGES = ("$out", "$merge")

# db.<collection>.<op>( where <collection> may be "database.collection"
_QUERY_RE = re.compile(r"db\.([^.(\s]+(?:\.[^.(\s]+)?)\.(\w+)\(")
_TRAILER_RE = re.compile(r"^\s*;?\s*$")

RESULT_TOO_LARGE = {"error": "Result too large", "truncated": True}


def parse_query_args(args_str: str) -> Any:
    """Decode query arguments: strict (extended) JSON first, then the restrictive literal parser."""
    try:
        return json_util.loads(args_str)
    except (ValueError, TypeError, BSONError):
        pass

    try:
        return parse_js_literal(args_str)
    except LiteralParseError as e:
        raise ExecutionError(f"Unable to parse query arguments: {args_str}") from e


def parse_shell_query(query: str) -> Tuple[str, str, str]:
    """
    Split `db.<collection>.<op>(<args>)` into its parts.

    Arguments run to the last closing parenthesis so multi-line pipelines work.
    """
    match = _QUERY_RE.search(query)
    if not match:
        raise ExecutionError("Invalid query format. Expected db.collection.operation()")

    closing = query.rfind(")")
    if closing < match.end() - 1 or not _TRAILER_RE.match(query[closing + 1:]):
        raise ExecutionError("Invalid query format. Missing arguments.")

    collection_name, operation = match.group(1), match.group(2)
    args_str = query[match.end():closing].strip()
    return collection_name, operation, args_str


def stringify_bson(data: Any) -> Any:
    """Convert BSON-specific values into JSON-friendly ones."""
    if isinstance(data, list):
        return [stringify_bson(item) for item in data]
    if isinstance(data, dict):
        return {k: stringify_bson(v) for k, v in data.items()}
    if isinstance(data, ObjectId):
        return str(data)
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, Decimal128):
        return float(data.to_decimal())
    if data is None or isinstance(data, (str, int, float, bool)):
        return data
    return str(data)


def limit_result_size(result: Any, max_size: int) -> Any:
    """Truncate long lists; replace oversized objects with a truncation marker."""
    if isinstance(result, list):
        return result[:max_size]

    if isinstance(result, dict):
        if len(json_util.dumps(result)) > max_size:
            return dict(RESULT_TOO_LARGE)

    return result


class QueryExecutor:
    """
    Executes generated MongoDB shell queries defensively.

    Only find, findOne, aggregate and countDocuments run, each capped at
    `max_documents`. Destructive queries are rejected before parsing.
    """

    def __init__(
        self,
        client: Optional[MongoClient],
        database: Optional[Database],
        max_documents: int = 100,
        max_result_size: int = 10000,
    ):
        self.client = client
        self.db = database
        self.max_documents = max_documents
        self.max_result_size = max_result_size

    def execute(self, query: str) -> ExecutionOutcome:
        """Run a query and capture any failure in the outcome instead of raising."""
        try:
            start = time.perf_counter()
            result = self.run(query)
            execution_time = round((time.perf_counter() - start) * 1000, 2)
            return ExecutionOutcome(query=query, result=result, execution_time=execution_time)
        except Exception as e:
            logger.error("Query execution error: %s", e)
            return ExecutionOutcome(query=query, result=None, error=str(e))

    def run(self, query: str) -> Any:
        if self.client is None or self.db is None:
            raise DatabaseUnavailableError("Database connection not available")

        is_safe, error_msg = validate_query_safety(query)
        if not is_safe:
            raise UnsafeQueryError(error_msg)

        result = self._execute_in_context(strip_comments(query))
        return limit_result_size(stringify_bson(result), self.max_result_size)

    def _execute_in_context(self, query: str) -> Any:
        if GET_NAME_QUERY in query:
            return self.db.name

        if GET_COLLECTION_NAMES_QUERY in query:
            return list_qualified_collection_names(self.client)

        if GET_DB_NAMES_QUERY in query or GET_DB_NAMES_SHORT_QUERY in query:
            return list_user_database_names(self.client)

        collection_name, operation, args_str = parse_shell_query(query)
        collection = self._resolve_collection(collection_name)

        if operation not in SUPPORTED_OPERATIONS:
            raise ExecutionError(f"Unsupported operation: {operation}")

        args = parse_query_args(f"[{args_str}]")

        if operation == "aggregate":
            return self._aggregate(collection, args)

        query_filter = self._filter_arg(args)
        projection = args[1] if len(args) > 1 else None

        if operation == "find":
            return list(collection.find(query_filter, projection).limit(self.max_documents))
        if operation == "findOne":
            return collection.find_one(query_filter, projection)
        return collection.count_documents(query_filter)

    def _resolve_collection(self, name: str) -> Collection:
        # A single dot addresses another database: db.<database>.<collection>
        if "." in name:
            db_name, collection_name = name.split(".", 1)
            return self.client[db_name][collection_name]
        return self.db[name]

    @staticmethod
    def _filter_arg(args: List[Any]) -> Dict[str, Any]:
        query_filter = args[0] if args else {}
        if query_filter is None:
            return {}
        if not isinstance(query_filter, dict):
            raise ExecutionError("Query filter must be an object")
        return query_filter

    def _aggregate(self, collection: Collection, args: List[Any]) -> List[Any]:
        # Accept both aggregate([stage, ...]) and aggregate(stage, stage, ...)
        if len(args) >= 1 and isinstance(args[0], list):
            pipeline = args[0]
        else:
            pipeline = args

        if not all(isinstance(stage, dict) for stage in pipeline):
            raise ExecutionError("Aggregate operation requires an array pipeline")

        if any(stage_name in stage for stage in pipeline for stage_name in WRITE_STAGES):
            raise UnsafeQueryError(UNSAFE_QUERY_MESSAGE)

        cursor = collection.aggregate(pipeline)
        try:
            return list(islice(cursor, self.max_documents))
        finally:
            cursor.close()
