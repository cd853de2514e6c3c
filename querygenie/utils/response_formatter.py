from typing import Any, Dict, List, Optional

from querygenie.models import ExecutionOutcome


def format_query_result(
    result: Any,
    query: str,
    execution_time: Optional[float] = None,
    error: Optional[str] = None,
) -> ExecutionOutcome:
    """Build the outcome sent to the client, with the result sanitized for transport."""
    return ExecutionOutcome(
        query=query,
        result=sanitize_result(result),
        execution_time=execution_time,
        error=error,
    )


def sanitize_result(result: Any) -> Any:
    """
    Sanitize a raw database result for display.

    Drops internal underscore fields (except _id), recurses into nested
    values and repairs strings that were serialized as {"0": "a", "1": "b"}.
    Values of any other type pass through unchanged. Applying it twice
    gives the same output as applying it once.
    """
    if result is None:
        return None
    if isinstance(result, str):
        return result
    if isinstance(result, list):
        return _sanitize_list(result)
    if isinstance(result, dict):
        sanitized = _sanitize_object(result)
        if is_string_like_object(sanitized):
            return reconstruct_string(sanitized)
        return sanitized
    return result


def _sanitize_list(items: List[Any]) -> List[Any]:
    # Lists of plain strings (e.g. collection names) are already clean
    if items and all(isinstance(item, str) for item in items):
        return items
    return [sanitize_result(item) for item in items]


def _sanitize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = {}
    for key, value in obj.items():
        if isinstance(key, str) and key.startswith("_") and key != "_id":
            continue
        sanitized[key] = sanitize_result(value)
    return sanitized


def is_string_like_object(obj: Any) -> bool:
    """True for {"0": "a", "1": "b", ...}: contiguous numeric keys from 0, all string values."""
    if not isinstance(obj, dict) or not obj:
        return False
    expected_keys = {str(index) for index in range(len(obj))}
    if set(obj.keys()) != expected_keys:
        return False
    return all(isinstance(value, str) for value in obj.values())


def reconstruct_string(obj: Dict[str, str]) -> str:
    return "".join(obj[str(index)] for index in range(len(obj)))
