"""Shared helpers for routers and services."""
from utils.case import convert_keys, dict_keys_to_camel, dict_keys_to_snake, to_snake_key
from utils.rows import as_float, row_to_dict, to_plain

__all__ = [
    "convert_keys",
    "to_snake_key",
    "dict_keys_to_camel",
    "dict_keys_to_snake",
    "row_to_dict",
    "to_plain",
    "as_float",
]
