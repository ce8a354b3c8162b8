"""
Marketplace Errors
Version: 1.0

Error taxonomy shared by every component.
None of these are fatal; the initiating action reports them and the user
may retry.
NO DEPENDENCIES on other modules.
"""

from typing import Iterable, List, Optional


class MarketplaceError(Exception):
    """Base for all client-side failures."""

    category = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(MarketplaceError):
    """Transport failure or a response that could not be interpreted."""

    category = "network"


class ApplicationError(MarketplaceError):
    """The server answered with a failure status and a message."""

    category = "application"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(MarketplaceError):
    """An identity operation failed."""

    category = "auth"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(MarketplaceError):
    """Rejected on the client; never reaches the network."""

    category = "validation"

    def __init__(self, messages):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__(". ".join(self.messages))

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Convert a pydantic.ValidationError into readable messages."""
        return cls(_format_pydantic_errors(exc.errors()))


def _format_pydantic_errors(errors: Iterable[dict]) -> List[str]:
    messages = []
    for err in errors:
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "__root__")
        msg = err.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages or ["Invalid input"]
