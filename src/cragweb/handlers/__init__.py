"""
=============================================================================
HANDLERS MODULE
=============================================================================

Built-in request handlers.

A handler is any callable taking a Request and returning a Response:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST → HANDLER → RESPONSE                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    Request                 Handler                 Response         │
    │   ┌─────────┐           ┌─────────┐           ┌─────────┐          │
    │   │ GET     │           │         │           │ 200 OK  │          │
    │   │ /hello  │ ────────▶ │ Logic   │ ────────▶ │         │          │
    │   │         │           │         │           │ Hello   │          │
    │   └─────────┘           └─────────┘           └─────────┘          │
    │                                                                      │
    │   A handler reports failure by raising. The dispatcher turns any    │
    │   exception into a 500 and keeps the server running.                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging

from ..http import Request, Response


logger = logging.getLogger(__name__)


def default_not_found_handler(request: Request) -> Response:
    """
    Fallback for unmatched requests.

    Always answers 404 with the built-in page. Register it with
    ServerBuilder.register_error_handler(default_not_found_handler).
    """
    logger.debug(f"Not found: {request}")
    return Response.not_found("not found")


__all__ = ["default_not_found_handler"]
