from typing import Any, Dict, List, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage

from querygenie.config import Settings, settings as default_settings
from querygenie.errors import ServiceUnavailableError
from querygenie.utils.logger import get_logger

logger = get_logger(__name__)

OPENROUTER_KEY_PREFIX = "sk-or-v1-"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
JSON_RESPONSE_FORMAT = {"type": "json_object"}

def create_llm(settings: Optional[Settings] = None) -> Tuple[Any, Dict[str, Any]]:
    """
    Factory function to create LLM instance based on provider setting.
    Supports OpenAI (and OpenRouter keys), Google Gemini, Hugging Face and
    a local OpenAI-compatible server such as LM Studio.

    Every returned model exposes `.invoke(messages)` returning a message
    with a `.content` string.

    Raises:
        ServiceUnavailableError: the selected provider has no credential configured.
    """
    settings = settings or default_settings
    provider = settings.llm_provider.lower()

    logger.info("Initializing LLM provider: %s", provider)

    if provider == "openai":
        return create_openai_llm(settings)
    elif provider == "gemini":
        return create_gemini_llm(settings)
    elif provider == "local":
        return create_local_llm(settings)
    elif provider == "huggingface":
        return create_huggingface_llm(settings)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}. Use 'openai', 'gemini', 'local', or 'huggingface'")

def create_openai_llm(settings: Settings):
    """Create OpenAI LLM instance. OpenRouter keys are sent to the OpenRouter endpoint."""
    if not settings.openai_api_key:
        raise ServiceUnavailableError("AI service is not available. Check OPENAI_API_KEY.")

    try:
        from langchain_openai import ChatOpenAI
    except ImportError:
        raise ImportError("langchain-openai not installed. Run: pip install langchain-openai")

    is_openrouter = settings.openai_api_key.startswith(OPENROUTER_KEY_PREFIX)
    base_url = OPENROUTER_BASE_URL if is_openrouter else settings.openai_base_url

    llm = ChatOpenAI(
        model=settings.openai_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        api_key=settings.openai_api_key,
        base_url=base_url,
        max_retries=2,
        timeout=120
    )

    # JSON mode is not supported by every OpenRouter model
    if not is_openrouter:
        llm = llm.bind(response_format=JSON_RESPONSE_FORMAT)

    logger.info("OpenAI LLM initialized: %s%s", settings.openai_model, " (via OpenRouter)" if is_openrouter else "")
    return llm, {
        "provider": "openrouter" if is_openrouter else "openai",
        "model": settings.openai_model,
        "json_mode": not is_openrouter
    }

class GeminiNativeLLM:
    """Adapter giving the google-genai client the LangChain-style `.invoke()` call."""

    def __init__(self, api_key: str, model_name: str, temperature: float, max_tokens: int):
        from google import genai

        self.client = genai.Client(api_key=api_key)
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens

    def invoke(self, messages: List[BaseMessage]) -> AIMessage:
        system_instruction = None
        contents = []

        for msg in messages:
            if msg.type == 'system':
                system_instruction = msg.content
            else:
                contents.append(msg.content)

        response = self.client.models.generate_content(
            model=self.model_name,
            contents=contents,
            config={
                'system_instruction': system_instruction,
                'temperature': self.temperature,
                'max_output_tokens': self.max_tokens,
                'response_mime_type': 'application/json'
            }
        )
        return AIMessage(content=response.text or "")

def create_gemini_llm(settings: Settings):
    """Create Google Gemini LLM instance using the google-genai SDK"""
    if not settings.google_api_key:
        raise ServiceUnavailableError("AI service is not available. Check GOOGLE_API_KEY.")

    try:
        llm = GeminiNativeLLM(
            settings.google_api_key,
            settings.gemini_model,
            settings.llm_temperature,
            settings.llm_max_tokens
        )
    except ImportError:
        raise ImportError("google-genai not installed. Run: pip install google-genai")

    logger.info("Google Gemini (native SDK) initialized: %s", settings.gemini_model)
    return llm, {
        "provider": "gemini",
        "model": settings.gemini_model,
        "json_mode": True
    }

def create_local_llm(settings: Settings):
    """Create Local LLM instance via LM Studio"""
    try:
        from langchain_openai import ChatOpenAI
    except ImportError:
        raise ImportError("langchain-openai not installed. Run: pip install langchain-openai")

    llm = ChatOpenAI(
        base_url=settings.local_llm_base_url,
        model=settings.local_llm_model,
        api_key="not-needed",  # LM Studio doesn't require API key
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        max_retries=2,
        timeout=120
    )

    logger.info("Local LLM initialized: %s at %s", settings.local_llm_model, settings.local_llm_base_url)
    return llm, {
        "provider": "local",
        "model": settings.local_llm_model,
        "json_mode": False
    }

class HuggingFaceNativeLLM:
    """Adapter giving the Hugging Face inference client the `.invoke()` call."""

    ROLE_MAP = {'system': 'system', 'human': 'user', 'ai': 'assistant'}

    def __init__(self, api_key: str, model_name: str, temperature: float, max_tokens: int):
        from huggingface_hub import InferenceClient

        self.client = InferenceClient(model=model_name, token=api_key)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def invoke(self, messages: List[BaseMessage]) -> AIMessage:
        hf_messages = [
            {"role": self.ROLE_MAP.get(msg.type, 'user'), "content": msg.content}
            for msg in messages
        ]

        response = self.client.chat_completion(
            messages=hf_messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature
        )
        return AIMessage(content=response.choices[0].message.content or "")

def create_huggingface_llm(settings: Settings):
    """Create Hugging Face LLM instance via Inference API"""
    if not settings.huggingface_api_key:
        raise ServiceUnavailableError("AI service is not available. Check HUGGINGFACE_API_KEY.")

    try:
        llm = HuggingFaceNativeLLM(
            settings.huggingface_api_key,
            settings.huggingface_model,
            settings.llm_temperature,
            settings.llm_max_tokens
        )
    except ImportError:
        raise ImportError("huggingface_hub not installed. Run: pip install huggingface_hub")

    logger.info("Hugging Face (native client) initialized: %s", settings.huggingface_model)
    return llm, {
        "provider": "huggingface",
        "model": settings.huggingface_model,
        "json_mode": False
    }
