from typing import Any, Dict, List, Optional

from pymongo import ASCENDING
from pymongo.database import Database

from querygenie.errors import DatabaseUnavailableError
from querygenie.models import QueryLogEntry
from querygenie.utils.logger import get_logger
from querygenie.utils.timeouts import run_with_timeout

logger = get_logger(__name__)

QUERY_LOG_COLLECTION = "querylogs"
HISTORY_LIMIT = 100


class HistoryService:
    """Query log of past questions and their generated queries, one record per turn."""

    def __init__(self, database: Optional[Database], save_timeout: float = 5.0):
        self.db = database
        self.save_timeout = save_timeout

    def _collection(self):
        if self.db is None:
            raise DatabaseUnavailableError("Database connection not available")
        return self.db[QUERY_LOG_COLLECTION]

    def save_query(
        self,
        conversation_id: str,
        user_query: str,
        generated_query: str,
        result: Any,
        execution_time: Optional[float] = None,
        error: Optional[str] = None,
    ) -> Optional[QueryLogEntry]:
        """
        Insert one log entry, waiting at most `save_timeout` seconds.

        Nothing is stored when no query was generated. Raises
        PersistenceError when the write fails or times out.
        """
        if not generated_query or not generated_query.strip():
            logger.debug("Skipping query log - no valid query generated.")
            return None

        collection = self._collection()
        entry = QueryLogEntry(
            conversation_id=conversation_id,
            user_query=user_query,
            generated_query=generated_query,
            result=result,
            execution_time=execution_time,
            error=error,
        )
        run_with_timeout(collection.insert_one, self.save_timeout, entry.model_dump(by_alias=True))
        return entry

    def get_conversation_history(self, conversation_id: str) -> List[Dict[str, Any]]:
        cursor = (
            self._collection()
            .find({"conversationId": conversation_id})
            .sort("timestamp", ASCENDING)
            .limit(HISTORY_LIMIT)
        )
        return list(cursor)

    def delete_conversation(self, conversation_id: str) -> int:
        result = self._collection().delete_many({"conversationId": conversation_id})
        return result.deleted_count
