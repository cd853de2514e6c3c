import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from pymongo import MongoClient
from pymongo.database import Database

from querygenie.errors import DatabaseUnavailableError, PersistenceError
from querygenie.models import SchemaSnapshot
from querygenie.utils.logger import get_logger
from querygenie.utils.schema_parser import (
    list_qualified_collection_names,
    list_user_database_names,
    parse_database_schema,
)
from querygenie.utils.timeouts import run_with_timeout

logger = get_logger(__name__)

SCHEMA_META_COLLECTION = "schemametas"


class SchemaCache:
    """
    Single-entry snapshot cache with a fixed time-to-live.

    Reads check the expiry timestamp; writes replace the entry wholesale.
    The clock is injectable so tests can control time.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[Tuple[SchemaSnapshot, float]] = None

    def get(self) -> Optional[SchemaSnapshot]:
        entry = self._entry
        if entry is None:
            return None
        snapshot, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return snapshot

    def set(self, snapshot: SchemaSnapshot) -> None:
        self._entry = (snapshot, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        self._entry = None


class SchemaService:
    """Builds, caches and persists schema snapshots of the connected cluster."""

    def __init__(
        self,
        client: Optional[MongoClient],
        database: Optional[Database],
        cache: Optional[SchemaCache] = None,
        save_timeout: float = 5.0,
    ):
        self.client = client
        self.db = database
        self.cache = cache or SchemaCache()
        self.save_timeout = save_timeout

    def _require_client(self) -> MongoClient:
        if self.client is None or self.db is None:
            raise DatabaseUnavailableError("Database connection not available")
        return self.client

    def get_schema(self, force_refresh: bool = False) -> SchemaSnapshot:
        """
        Return the cluster schema, from cache when fresh.

        On a fetch failure the last persisted snapshot is used instead;
        if there is none the original error propagates.
        """
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                return cached

        client = self._require_client()

        try:
            snapshot = parse_database_schema(client)
        except Exception as e:
            logger.error("Error fetching schema: %s", e)
            persisted = self._load_schema_from_db()
            if persisted is not None:
                return persisted
            raise

        self.cache.set(snapshot)
        self._save_schema_to_db(snapshot)
        return snapshot

    def refresh_schema(self) -> SchemaSnapshot:
        return self.get_schema(force_refresh=True)

    def get_collection_names(self) -> List[str]:
        """Collections from all non-system databases, as "database.collection"."""
        return list_qualified_collection_names(self._require_client())

    def get_all_database_names(self) -> List[str]:
        return list_user_database_names(self._require_client())

    def get_database_name(self) -> str:
        self._require_client()
        return self.db.name

    def _save_schema_to_db(self, snapshot: SchemaSnapshot) -> None:
        meta = self.db[SCHEMA_META_COLLECTION]
        try:
            run_with_timeout(
                meta.update_one,
                self.save_timeout,
                {},
                {
                    "$set": {
                        "schema": snapshot.model_dump(),
                        "lastUpdated": datetime.now(timezone.utc),
                    },
                    "$inc": {"version": 1},
                },
                upsert=True,
            )
        except PersistenceError as e:
            # The snapshot is still served from memory
            logger.error("Error saving schema to DB: %s", e)

    def _load_schema_from_db(self) -> Optional[SchemaSnapshot]:
        try:
            meta = self.db[SCHEMA_META_COLLECTION].find_one({}, sort=[("version", -1)])
            if meta and meta.get("schema"):
                snapshot = SchemaSnapshot.model_validate(meta["schema"])
                self.cache.set(snapshot)
                return snapshot
        except Exception as e:
            logger.error("Error loading schema from DB: %s", e)
        return None
