"""
=============================================================================
ROUTING TABLE
=============================================================================

Maps a request's identity (method, path) to the handler that answers it.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Incoming Request                                                   │
    │   GET /hello                                                         │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTING TABLE (frozen)                                     │   │
    │   │                                                              │   │
    │   │  GET  /hello       → hello_handler       ← MATCH!           │   │
    │   │  POST /echo        → echo_handler                           │   │
    │   │  UNIDENTIFIED      → not_found_handler   ← everything else  │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   hello_handler(request)                                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Matching is exact: no patterns, no trailing-slash normalization, no
percent-decoding. "/hello" and "/hello/" are different routes.

=============================================================================
BUILD, THEN FREEZE
=============================================================================

Routes are collected on a mutable Router. Router.freeze() copies them
into a RoutingTable whose mapping is a read-only MappingProxyType. The
table is then handed to every worker thread by reference. Since nothing
can write to it any more, no lock is needed to read it.

    router = Router()
    router.add_route(Request.get("/hello"), hello)
    router.set_error_handler(not_found)
    table = router.freeze()          ← raises MissingErrorHandler if
                                       set_error_handler() was never called

=============================================================================
"""

import logging
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from ..errors import DuplicateErrorHandler, MissingErrorHandler
from .request import Method, Request, UNIDENTIFIED
from .response import Response


logger = logging.getLogger(__name__)


# Handler: a function that takes a request and returns a response.
# A handler reports failure by raising; the dispatcher turns that into a 500.
Handler = Callable[[Request], Response]


def _route_key(request: Request) -> Request:
    """Strip the body so registration never keeps a payload alive."""
    return Request(request.method, request.path)


class RoutingTable:
    """
    Frozen mapping from request identity to handler.

    Always contains the UNIDENTIFIED fallback. Safe to share between
    threads: the underlying dict is private and only exposed through a
    MappingProxyType.
    """

    def __init__(self, handlers: Mapping[Request, Handler]):
        if UNIDENTIFIED not in handlers:
            raise MissingErrorHandler()
        self._handlers = MappingProxyType(dict(handlers))

    @property
    def handlers(self) -> Mapping[Request, Handler]:
        return self._handlers

    @property
    def error_handler(self) -> Handler:
        return self._handlers[UNIDENTIFIED]

    def lookup(self, request: Request) -> Handler:
        """
        Find the handler for a request.

        Exact match on (method, path); anything else gets the fallback.
        """
        handler = self._handlers.get(request)
        if handler is None:
            logger.debug(f"No route for {request}, using fallback handler")
            return self.error_handler
        return handler

    def __contains__(self, request: object) -> bool:
        return request in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[Request]:
        return iter(self._handlers)

    def describe(self) -> List[str]:
        """
        One line per route, fallback last. Example:

            GET      /hello
            POST     /echo
            *        (fallback)
        """
        lines = [
            f"{key.method.value:8} {key.path}"
            for key in self._handlers
            if key != UNIDENTIFIED
        ]
        lines.sort()
        lines.append(f"{'*':8} (fallback)")
        return lines


class Router:
    """
    Mutable route collection used while a server is being built.

    =========================================================================
    DECORATOR-BASED API
    =========================================================================

        router = Router()

        @router.get("/hello")
        def hello(request):
            return Response.ok("Hello, Crag-Web!")

        @router.post("/echo")
        def echo(request):
            return Response.ok(request.body)

        @router.error_handler
        def not_found(request):
            return Response.not_found(f"no route for {request}")

    =========================================================================
    """

    def __init__(self):
        self._handlers: Dict[Request, Handler] = {}
        self._error_handler: Optional[Handler] = None

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, request: Request, handler: Handler) -> "Router":
        """
        Register handler for the identity of request.

        Registering the same (method, path) twice keeps the last handler.
        Registering under UNIDENTIFIED is the same as set_error_handler().

        Returns:
            Self for method chaining.
        """
        if request == UNIDENTIFIED:
            return self.set_error_handler(handler)

        key = _route_key(request)
        if key in self._handlers:
            logger.warning(f"Replacing handler for {key}")
        self._handlers[key] = handler
        return self

    def set_error_handler(self, handler: Handler) -> "Router":
        """
        Register the fallback handler for unmatched requests.

        Raises:
            DuplicateErrorHandler: If one is already registered.
        """
        if self._error_handler is not None:
            raise DuplicateErrorHandler()
        self._error_handler = handler
        return self

    @property
    def has_error_handler(self) -> bool:
        return self._error_handler is not None

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================

    def route(self, method: Method, path: str) -> Callable[[Handler], Handler]:
        """Decorator registering a handler for (method, path)."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(Request(method, path), handler)
            return handler  # unchanged, so decorators can stack
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(Method.GET, path)

    def post(self, path: str) -> Callable[[Handler], Handler]:
        """Register a POST route."""
        return self.route(Method.POST, path)

    def error_handler(self, handler: Handler) -> Handler:
        """Decorator form of set_error_handler()."""
        self.set_error_handler(handler)
        return handler

    # =========================================================================
    # FREEZING
    # =========================================================================

    def freeze(self) -> RoutingTable:
        """
        Produce the immutable table shared by all workers.

        Later changes to this Router do not affect the returned table.

        Raises:
            MissingErrorHandler: If no fallback handler was registered.
        """
        if not self.has_error_handler:
            raise MissingErrorHandler()

        handlers = dict(self._handlers)
        handlers[UNIDENTIFIED] = self._error_handler
        return RoutingTable(handlers)

    def __len__(self) -> int:
        return len(self._handlers)
