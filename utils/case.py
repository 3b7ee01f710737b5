"""
Key-case conversion at the API boundary.
Clients send and receive camelCase; services, JSON columns and edit payloads use snake_case.
Built on Pydantic's alias generators so routers agree with CamelModel schemas.
"""
from typing import Any, Callable

from pydantic.alias_generators import to_camel, to_snake


def to_snake_key(key: str) -> str:
    """'phoneVerified' -> 'phone_verified'; snake_case input passes through unchanged."""
    return to_snake(key) if key else key


def convert_keys(obj: Any, convert: Callable[[str], str]) -> Any:
    """Apply convert to every dict key, descending into nested dicts and lists."""
    if isinstance(obj, dict):
        return {convert(k) if isinstance(k, str) else k: convert_keys(v, convert) for k, v in obj.items()}
    if isinstance(obj, list):
        return [convert_keys(x, convert) for x in obj]
    return obj


def dict_keys_to_camel(obj: Any) -> Any:
    return convert_keys(obj, to_camel)


def dict_keys_to_snake(obj: Any) -> Any:
    return convert_keys(obj, to_snake_key)
