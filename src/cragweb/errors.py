"""
Construction errors.

Everything in here is raised while a server is being built, before it
accepts a single connection. None of them can happen once run() starts.

    ServerBuildError
    ├── MissingErrorHandler      finalize() without a fallback handler
    ├── DuplicateErrorHandler    second register_error_handler()
    ├── InvalidPoolSize          pool size < 1
    ├── AddressResolutionError   address does not resolve
    └── BindError                address resolves but cannot be bound

Connection-scoped failures (parse errors, handler exceptions, socket
errors) live next to the code that raises them and never escape a worker.
"""


class ServerBuildError(Exception):
    """Base class for errors that stop a server from being built."""


class MissingErrorHandler(ServerBuildError):
    """No fallback handler was registered before the routes were frozen."""

    def __init__(self, message: str = "No handler for 404 errors"):
        super().__init__(message)


class DuplicateErrorHandler(ServerBuildError):
    """A fallback handler was already registered."""

    def __init__(self, message: str = "Error handler already registered"):
        super().__init__(message)


class InvalidPoolSize(ServerBuildError):
    """The worker pool was asked for fewer than one worker."""

    def __init__(self, size: int):
        super().__init__(f"Pool size must be >= 1, got {size}")
        self.size = size


class AddressResolutionError(ServerBuildError):
    """The listening address could not be resolved."""


class BindError(ServerBuildError):
    """The listening socket could not be bound."""
