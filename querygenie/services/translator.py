import re
import time
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from querygenie.config import Settings
from querygenie.errors import ServiceUnavailableError, TranslationError
from querygenie.models import QueryTranslation, SchemaSnapshot, TranslationResult
from querygenie.services.llm_service import create_llm
from querygenie.utils.logger import get_logger
from querygenie.utils.prompt_builder import IntrospectionSource, build_prompt
from querygenie.utils.response_parser import parse_ai_response

logger = get_logger(__name__)

GREETING_PATTERN = re.compile(r"^(hi|hello|hey|greetings|good (morning|afternoon|evening))$", re.IGNORECASE)

GREETING_MESSAGE = (
    "Hello! 👋 I'm your AI database assistant. I can help you query and analyze your "
    "MongoDB database using natural language. What would you like to know about your data?"
)


def is_greeting(text: str) -> bool:
    """True when the whole trimmed input is a conversational opener."""
    return bool(GREETING_PATTERN.match(text.strip()))


def _response_text(response: Any) -> str:
    """Flatten a chat model response into plain text."""
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, dict) and "text" in block:
                parts.append(block["text"])
            elif isinstance(block, str):
                parts.append(block)
        return "".join(parts)
    return str(content)


class QueryTranslator:
    """
    Turns a question into a TranslationResult using a chat model.

    The model is optional so the service can start without credentials;
    translate() then raises ServiceUnavailableError.
    """

    def __init__(
        self,
        llm: Any = None,
        llm_metadata: Optional[Dict[str, Any]] = None,
        introspection_source: Optional[IntrospectionSource] = None,
        debug: bool = False,
    ):
        self.llm = llm
        self.llm_metadata = llm_metadata or {"provider": "none", "model": "none"}
        self.introspection_source = introspection_source
        self.debug = debug

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        introspection_source: Optional[IntrospectionSource] = None,
    ) -> "QueryTranslator":
        try:
            llm, metadata = create_llm(settings)
        except ServiceUnavailableError as e:
            logger.warning("%s AI features disabled.", e.message)
            return cls(introspection_source=introspection_source, debug=settings.is_development)
        return cls(llm, metadata, introspection_source, debug=settings.is_development)

    def is_available(self) -> bool:
        return self.llm is not None

    def translate(self, question: str, schema: SchemaSnapshot) -> TranslationResult:
        if self.llm is None:
            raise ServiceUnavailableError("AI service is not available. Check the LLM API key.")

        prompt = build_prompt(question, schema, self.introspection_source)
        messages = [
            SystemMessage(content=prompt.system_instruction),
            HumanMessage(content=prompt.user_instruction)
        ]

        if self.debug:
            logger.debug("User query: %s", question)
            logger.debug("Prompt (first 300 chars): %.300s", prompt.user_instruction)

        llm_start_time = time.time()
        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            logger.error("Error generating query with LLM: %s", e)
            raise TranslationError(f"Failed to generate query: {e}") from e

        content = _response_text(response)
        logger.info(
            "LLM response from %s/%s received in %.2fs",
            self.llm_metadata.get("provider"), self.llm_metadata.get("model"), time.time() - llm_start_time
        )
        if self.debug:
            logger.debug("AI response (first 500 chars): %.500s", content)

        result = parse_ai_response(content)
        if isinstance(result, QueryTranslation):
            logger.info("Generated query: %s", result.query)
        else:
            logger.info("AI returned %s response", result.kind)
        return result
