"""Router that serves every path with and without a trailing slash."""

from typing import Any, Callable

from fastapi import APIRouter
from fastapi.types import DecoratedCallable


class TrailingSlashRouter(APIRouter):
    """Registers each route twice, as ``/path`` and ``/path/``.

    Only the slash-less form appears in the OpenAPI schema. Payment providers
    post to whatever URL was configured in their dashboard, so a redirect on
    a webhook route would lose the request body.
    """

    def api_route(
        self, path: str, *, include_in_schema: bool = True, **kwargs: Any
    ) -> Callable[[DecoratedCallable], DecoratedCallable]:
        """Register ``path`` and its trailing-slash twin for the decorated endpoint."""
        path = path.rstrip("/") if path != "/" else path

        add_path = super().api_route(path, include_in_schema=include_in_schema, **kwargs)
        add_alternate_path = super().api_route(path + "/", include_in_schema=False, **kwargs)

        def decorator(func: DecoratedCallable) -> DecoratedCallable:
            add_alternate_path(func)
            return add_path(func)

        return decorator
