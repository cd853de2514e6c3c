from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from bson import Decimal128, Int64, ObjectId
from pymongo import MongoClient

from querygenie.models import CollectionInfo, DatabaseInfo, FieldInfo, SchemaSnapshot
from querygenie.utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_DATABASES = ("admin", "local", "config")
SYSTEM_COLLECTION_PREFIX = "system."


def is_system_database(name: str) -> bool:
    return name in SYSTEM_DATABASES


def is_system_collection(name: str) -> bool:
    return name.startswith(SYSTEM_COLLECTION_PREFIX)


def list_user_database_names(client: MongoClient) -> List[str]:
    """Names of all non-system databases in the cluster."""
    return [name for name in client.list_database_names() if not is_system_database(name)]


def list_qualified_collection_names(client: MongoClient) -> List[str]:
    """All user collections across the cluster as "database.collection" names."""
    names: List[str] = []
    for db_name in list_user_database_names(client):
        try:
            collection_names = client[db_name].list_collection_names()
        except Exception as e:
            logger.warning("Error fetching collections from database %s: %s", db_name, e)
            continue
        names.extend(
            f"{db_name}.{collection_name}"
            for collection_name in collection_names
            if not is_system_collection(collection_name)
        )
    return names


def infer_field_type(value: Any) -> str:
    """Infer a display type tag for a sampled BSON value."""
    if value is None:
        return "null"
    if isinstance(value, list):
        if value:
            return f"Array<{infer_field_type(value[0])}>"
        return "Array"
    if isinstance(value, (datetime, date)):
        return "Date"
    if isinstance(value, dict):
        return "Object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal, Decimal128, Int64)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, ObjectId):
        return "ObjectId"
    return type(value).__name__


def parse_document_fields(doc: Dict[str, Any]) -> List[FieldInfo]:
    """Build the field list for one sampled document, skipping internal fields except _id."""
    fields = []
    for key, value in doc.items():
        if key.startswith("_") and key != "_id":
            continue
        fields.append(FieldInfo(
            name=key,
            type=infer_field_type(value),
            required=value is not None,
        ))
    return fields


def parse_database_schema(client: MongoClient) -> SchemaSnapshot:
    """
    Walk every non-system database in the cluster and sample one document per collection.

    Databases that fail to list are logged and skipped. Databases without
    user collections are left out of the snapshot.
    """
    databases: List[DatabaseInfo] = []
    flat_collections: List[CollectionInfo] = []

    for db_name in client.list_database_names():
        if is_system_database(db_name):
            continue

        try:
            db = client[db_name]
            db_collections: List[CollectionInfo] = []

            for collection_name in db.list_collection_names():
                if is_system_collection(collection_name):
                    continue

                sample_doc = db[collection_name].find_one({})
                if sample_doc:
                    fields = parse_document_fields(sample_doc)
                else:
                    # Empty collection - only the implicit _id is known
                    fields = [FieldInfo(name="_id", type="ObjectId", required=True)]

                db_collections.append(CollectionInfo(name=collection_name, fields=fields))

            if db_collections:
                databases.append(DatabaseInfo(name=db_name, collections=db_collections))
                flat_collections.extend(
                    CollectionInfo(name=f"{db_name}.{c.name}", fields=c.fields) for c in db_collections
                )
        except Exception as e:
            logger.warning("Error parsing schema from database %s: %s", db_name, e)
            continue

    return SchemaSnapshot(databases=databases, collections=flat_collections)
