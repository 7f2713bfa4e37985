"""
=============================================================================
EXAMPLE: SIMPLE SERVER
=============================================================================

The smallest useful crag-web program, plus a guestbook to show POST
bodies and shared state across worker threads.

    ┌─────────────────────────────────────────────────────────────────┐
    │   GET  /hello       → "Hello, Crag-Web!"                        │
    │   GET  /guestbook   → every message posted so far               │
    │   POST /guestbook   → append the request body                   │
    │   anything else     → built-in 404 page                         │
    └─────────────────────────────────────────────────────────────────┘

Run it (after `pip install -e .`):

    python examples/simple.py

=============================================================================
"""

import html
import logging
import sys
import threading

from cragweb import (
    Request,
    Response,
    Server,
    ServerBuildError,
    default_not_found_handler,
    setup_logging,
)


logger = logging.getLogger("simple")


# =============================================================================
# SHARED STATE
# =============================================================================
# Handlers run on several worker threads at once, so anything they share
# needs a lock. The routing table itself is frozen and needs none.

guestbook: list = []
guestbook_lock = threading.Lock()


def hello(request: Request) -> Response:
    return Response.ok("Hello, Crag-Web!")


def read_guestbook(request: Request) -> Response:
    with guestbook_lock:
        entries = list(guestbook)
    items = "".join(f"<li>{html.escape(entry)}</li>" for entry in entries)
    return Response.ok(f"<ul>{items}</ul>")


def sign_guestbook(request: Request) -> Response:
    message = request.body.strip()
    with guestbook_lock:
        guestbook.append(message)
        count = len(guestbook)
    logger.info(f"Guestbook entry #{count}: {message!r}")
    return Response.ok(f"Thanks! You are visitor #{count}.")


def main() -> int:
    setup_logging("INFO")

    try:
        server = (Server.build()
            .register_handler(Request.get("/hello"), hello)
            .register_handler(Request.get("/guestbook"), read_guestbook)
            .register_handler(Request.post("/guestbook"), sign_guestbook)
            .register_error_handler(default_not_found_handler)
            .finalize(("127.0.0.1", 12345), 4))
    except ServerBuildError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print()
    print("Try:")
    print("  curl http://127.0.0.1:12345/hello")
    print("  curl -d 'hi there' http://127.0.0.1:12345/guestbook")
    print("  curl http://127.0.0.1:12345/guestbook")
    print()

    # Blocks until Ctrl+C
    with server:
        server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
