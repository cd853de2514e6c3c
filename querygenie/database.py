from typing import Optional, Tuple

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConfigurationError, PyMongoError

from querygenie.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DATABASE_NAME = "test"


def resolve_database_name(client: MongoClient, configured: Optional[str] = None) -> str:
    """Use the configured name, else the database named in the URI, else 'test'."""
    if configured:
        return configured
    try:
        return client.get_default_database(default=DEFAULT_DATABASE_NAME).name
    except ConfigurationError:
        return DEFAULT_DATABASE_NAME


def connect_to_mongo(uri: str, database_name: Optional[str] = None) -> Tuple[MongoClient, Database]:
    """Create the client used by every service and bind the default database."""
    client = MongoClient(
        uri,
        serverSelectionTimeoutMS=30000,
        connectTimeoutMS=30000,
        socketTimeoutMS=45000,
        maxPoolSize=10,
        retryReads=True,
    )
    database = client[resolve_database_name(client, database_name)]
    logger.info("MongoDB client created for database: %s", database.name)
    return client, database


def ping(client: Optional[MongoClient]) -> bool:
    """Return True when the cluster answers a ping."""
    if client is None:
        return False
    try:
        client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning("MongoDB ping failed: %s", e)
        return False
