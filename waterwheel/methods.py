"""
HTTP verbs accepted by the request helper
"""

from enum import Enum
from typing import Union


class Method(str, Enum):
    GET = 'GET'
    POST = 'POST'
    PUT = 'PUT'
    PATCH = 'PATCH'
    DELETE = 'DELETE'
    HEAD = 'HEAD'
    OPTIONS = 'OPTIONS'


def resolve_method(method: Union[Method, str]) -> Method:
    """Coerce a verb given as a string (any case) into a Method member."""
    if isinstance(method, Method):
        return method
    try:
        return Method(str(method).upper())
    except ValueError:
        raise ValueError(f"Unsupported HTTP method: {method!r}") from None
