import re
from typing import Optional
from querygenie.config import settings

# Destructive shell operations, matched case-insensitively anywhere in the query text
DANGEROUS_QUERY_PATTERNS = [
    re.compile(r"db\.dropDatabase", re.IGNORECASE),
    re.compile(r"db\.dropCollection", re.IGNORECASE),
    re.compile(r"\.remove\(", re.IGNORECASE),
    re.compile(r"\.deleteMany\(", re.IGNORECASE),
    re.compile(r"\.drop\(", re.IGNORECASE),
    re.compile(r"shutdown", re.IGNORECASE),
]

UNSAFE_QUERY_MESSAGE = "Dangerous operation detected. Query rejected for safety."

def validate_natural_query(query: str, max_length: Optional[int] = None) -> tuple[bool, str]:
    """
    Validate a natural language question before it enters the pipeline.

    Returns:
        tuple: (is_valid, error_message)
    """
    max_length = max_length or settings.max_query_length

    if not isinstance(query, str):
        return False, f"Query must be a string, received {type(query).__name__}"

    if not query or len(query.strip()) == 0:
        return False, "Query cannot be empty"

    if len(query) > max_length:
        return False, f"Query exceeds maximum length of {max_length} characters (received {len(query)})"

    return True, ""

def validate_query_safety(query: str) -> tuple[bool, str]:
    """
    Check a generated MongoDB shell query against the destructive-operation denylist.

    Returns:
        tuple: (is_safe, error_message)
    """
    for pattern in DANGEROUS_QUERY_PATTERNS:
        if pattern.search(query):
            return False, UNSAFE_QUERY_MESSAGE

    return True, ""

def sanitize_query(query: str) -> str:
    """
    Sanitize natural language query by removing potentially harmful characters.
    """
    # Remove control characters
    query = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', query)

    # Trim whitespace
    query = query.strip()

    return query

# Quoted strings are matched first and kept so "//" inside a string survives
_STRING_OR_COMMENT_RE = re.compile(
    r"(\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*')|//[^\n]*|/\*[\s\S]*?\*/"
)

def strip_comments(query: str) -> str:
    """Remove // line comments and /* */ block comments from a shell query."""
    stripped = _STRING_OR_COMMENT_RE.sub(lambda match: match.group(1) or "", query)
    return stripped.strip()
