"""Litestar-Inertia exception classes."""

__all__ = [
    "InertiaPropsError",
    "LitestarInertiaError",
    "SSRRenderError",
]


class LitestarInertiaError(Exception):
    """Base exception for Litestar-Inertia related errors."""


class InertiaPropsError(LitestarInertiaError, TypeError):
    """Raised when a render receives props of the wrong shape."""

    def __init__(self, expected: str, received: object) -> None:
        """Initialize the exception.

        Args:
            expected: Description of the accepted shape.
            received: The offending value.
        """
        super().__init__(f"Expected {expected}, got {type(received).__name__!r}.")
        self.received = received


class SSRRenderError(LitestarInertiaError):
    """Raised when the SSR server cannot render a page."""

    def __init__(self, message: str, url: "str | None" = None) -> None:
        super().__init__(message)
        self.url = url
