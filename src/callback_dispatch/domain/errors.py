"""Domain exceptions for callback compilation and resolution."""


class CallbackError(Exception):
    """Base class for callback errors."""


class CallbackCompilationError(CallbackError):
    """Raised when a callback description cannot be compiled into plans."""


class CallbackResolutionError(CallbackError):
    """Raised when a callback request cannot be resolved from its runtime context."""


class JsonPointerError(CallbackResolutionError):
    """Raised when a JSON pointer cannot be evaluated against a payload."""


__all__ = [
    "CallbackCompilationError",
    "CallbackError",
    "CallbackResolutionError",
    "JsonPointerError",
]
