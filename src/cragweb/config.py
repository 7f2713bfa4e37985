"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything needed to start a server from the outside world (CLI flags,
environment variables) in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m cragweb --port 3000                             │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── CRAG_PORT=3000 python -m cragweb                          │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Programs that embed the server do not need this module at all: they call
ServerBuilder.finalize(address, pool_size) directly.

=============================================================================
INTERVIEW QUESTIONS ABOUT CONFIGURATION
=============================================================================

Q: "How do you validate configuration?"
A: "Validate eagerly at startup, not lazily at first use.
   Fail fast with clear error messages."

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Tuple


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for a crag-web server.

    =========================================================================
    DEVELOPMENT VS PRODUCTION
    =========================================================================

    Development:
        ServerConfig(
            host="127.0.0.1",    # Localhost only
            port=8080,           # High port (no sudo)
            log_level="DEBUG",   # Verbose logging
        )

    Container:
        ServerConfig(
            host="0.0.0.0",      # All interfaces
            workers=16,          # More threads
            log_format="json",   # For log aggregators
        )

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces
    """

    port: int = 8080
    """
    The port number to listen on. 0 lets the OS pick a free port; read
    the real one back from Server.address.
    """

    backlog: int = 128
    """
    Maximum number of connections the kernel queues before accept().
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 4
    """
    Number of worker threads, i.e. the maximum number of connections
    handled at the same time. Fixed for the lifetime of the server.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """

    log_format: str = "text"
    """
    Access log format: 'json' or 'text'.
    """

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        CRAG_HOST        Server host (default: 127.0.0.1)
        CRAG_PORT        Server port (default: 8080)
        CRAG_WORKERS     Worker threads (default: 4)
        CRAG_LOG_LEVEL   Logging level (default: INFO)
        CRAG_LOG_FORMAT  Access log format (default: text)

        =====================================================================

        Raises:
            ValueError: If CRAG_PORT or CRAG_WORKERS is not an integer.
        """
        return cls(
            host=os.getenv("CRAG_HOST", "127.0.0.1"),
            port=int(os.getenv("CRAG_PORT", "8080")),
            workers=int(os.getenv("CRAG_WORKERS", "4")),
            log_level=os.getenv("CRAG_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("CRAG_LOG_FORMAT", "text").lower(),
        )

    @property
    def address(self) -> Tuple[str, int]:
        return self.host, self.port

    @property
    def level(self) -> int:
        """log_level as a logging module constant."""
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

        if self.backlog < 1:
            raise ValueError(f"backlog must be >= 1, got {self.backlog}")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. Must be one of {', '.join(LOG_LEVELS)}."
            )

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid log_format: {self.log_format}. Must be one of {', '.join(LOG_FORMATS)}."
            )
