"""
Resource id extractors.

An extractor maps a request to an optional id read from the router's path
parameters. ``new`` (create forms) and unresolved ``[param]`` placeholders
are not ids.
"""

from typing import Callable, Optional

from starlette.requests import Request

IdExtractor = Callable[[Request], Optional[str]]


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value or value == "new":
        return None
    if value.startswith("["):
        return None
    return value


def resource_id_from_path(param: str) -> IdExtractor:
    """Build an extractor that reads the ``param`` path parameter."""

    def extract(request: Request) -> Optional[str]:
        return _clean(request.path_params.get(param))

    extract.__name__ = f"{param}_from_path"
    return extract


def client_id_from_path(request: Request) -> Optional[str]:
    """Client id from the ``client_id`` path parameter."""
    return _clean(request.path_params.get("client_id"))
