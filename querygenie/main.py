from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import uvicorn
from contextlib import asynccontextmanager

from querygenie.config import settings
from querygenie.agents.mongodb_agent import QueryGenieAgent
from querygenie.database import connect_to_mongo, ping
from querygenie.errors import DatabaseUnavailableError, QueryGenieError, ServiceUnavailableError
from querygenie.models import ConversationTurn, QueryResponse, SchemaSnapshot
from querygenie.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

# Global agent instance
agent: Optional[QueryGenieAgent] = None


def _require_agent() -> QueryGenieAgent:
    if agent is None:
        raise ServiceUnavailableError("Agent not initialized")
    return agent


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    global agent

    # Startup
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("Starting QueryGenie")
    logger.info("LLM Provider: %s", settings.llm_provider)
    logger.info("=" * 60)

    try:
        client, database = connect_to_mongo(settings.mongo_uri, settings.database_name)
        agent = QueryGenieAgent.from_settings(client, database, settings)
        logger.info("QueryGenie agent initialized for database: %s", agent.database_name)
    except Exception as e:
        logger.error("Failed to initialize agent: %s", e)
        raise

    yield

    # Shutdown
    if agent:
        agent.close()
    logger.info("QueryGenie shutting down")


# Create FastAPI app
app = FastAPI(
    title="QueryGenie",
    description="Natural language questions answered with MongoDB queries",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str, status_code: int) -> Dict[str, Any]:
    return {"error": {"message": message, "statusCode": status_code}}


@app.exception_handler(QueryGenieError)
async def querygenie_error_handler(request: Request, exc: QueryGenieError):
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.status_code))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(status_code=400, content=_error_body(message, 400))


# Pydantic models
class QueryRequest(BaseModel):
    query: str = Field(..., description="Natural language query", min_length=1, max_length=1000)
    conversation_id: Optional[str] = Field(
        None, alias="conversationId", description="Existing conversation (omit on the first turn)"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "query": "Show all users older than 30",
                "conversationId": None
            }
        }
    )


class SchemaRefreshResponse(BaseModel):
    message: str
    schema_: SchemaSnapshot = Field(alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class MessageResponse(BaseModel):
    message: str


# Routes
@app.get("/", tags=["Root"])
def root():
    """Root endpoint"""
    return {
        "service": "QueryGenie",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "status": "/api/status",
            "query": "/api/query (POST)",
            "schema": "/api/schema",
            "conversations": "/api/conversations/{conversationId}",
            "docs": "/docs"
        }
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check():
    """Health check endpoint"""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc)}


@app.get("/api/status", tags=["Health"])
def service_status():
    """Database connectivity and model availability"""
    current = _require_agent()
    return {
        "database": {
            "connected": ping(current.client),
            "name": current.database_name,
        },
        "llm": {
            "available": current.translator.is_available(),
            "provider": current.llm_metadata.get("provider"),
            "model": current.llm_metadata.get("model"),
        },
    }


@app.post("/api/query", response_model=QueryResponse, tags=["Query"])
def process_query(request: QueryRequest):
    """
    Translate a natural language question to a MongoDB query and execute it.
    """
    current = _require_agent()
    logger.info("Received query: '%s'", request.query)
    response = current.process_query(request.query, request.conversation_id)
    logger.info("Processing complete. Error: %s", response.result.error)
    return response


@app.get("/api/schema", response_model=SchemaSnapshot, tags=["Schema"])
def get_schema(refresh: bool = False):
    """Schema snapshot of every non-system database"""
    current = _require_agent()
    try:
        return current.schema_service.get_schema(force_refresh=refresh)
    except DatabaseUnavailableError as e:
        raise ServiceUnavailableError(e.message) from e


@app.post("/api/schema/refresh", response_model=SchemaRefreshResponse, tags=["Schema"])
def refresh_schema():
    """Rebuild the schema snapshot, bypassing the cache"""
    current = _require_agent()
    try:
        snapshot = current.schema_service.refresh_schema()
    except DatabaseUnavailableError as e:
        raise ServiceUnavailableError(e.message) from e
    return SchemaRefreshResponse(message="Schema refreshed successfully", schema_=snapshot)


@app.get("/api/conversations/{conversation_id}", response_model=List[ConversationTurn], tags=["Conversations"])
def get_conversation(conversation_id: str):
    """Turns of a conversation, oldest first"""
    current = _require_agent()
    try:
        return current.get_conversation(conversation_id)
    except DatabaseUnavailableError as e:
        raise ServiceUnavailableError(e.message) from e


@app.delete("/api/conversations/{conversation_id}", response_model=MessageResponse, tags=["Conversations"])
def delete_conversation(conversation_id: str):
    """Remove every logged turn of a conversation"""
    current = _require_agent()
    try:
        deleted = current.delete_conversation(conversation_id)
    except DatabaseUnavailableError as e:
        raise ServiceUnavailableError(e.message) from e
    logger.info("Deleted %d log entries for conversation %s", deleted, conversation_id)
    return {"message": "Conversation deleted successfully"}


# Run server
if __name__ == "__main__":
    uvicorn.run(
        "querygenie.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
