"""
Error Translation Service
Version: 1.0

Turns client errors into the notification a user sees after an action.

1. Pattern-based detection for transport failures
2. Action-specific fallbacks when a server message is not meant for users
3. Success messages for the same actions
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from marketplace.errors import (
    ApplicationError,
    AuthError,
    MarketplaceError,
    NetworkError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """What the user is shown; level is "success" or "error"."""
    level: str
    message: str


@dataclass
class ErrorPattern:
    """Pattern for detecting and translating errors."""
    pattern: str
    user_message: str
    categories: List[str] = field(default_factory=list)

    def matches(self, error: MarketplaceError) -> bool:
        if self.categories and error.category not in self.categories:
            return False
        return re.search(self.pattern, error.message, re.IGNORECASE) is not None


class ErrorTranslator:
    """
    Notification text for every action the client exposes.

    Server messages are shown as-is for actions where they are written for
    the user (booking, sign-in); other actions get a fixed message.
    """

    SUCCESS_MESSAGES = {
        "sign_in": "Logged in successfully!",
        "sign_in_with_provider": "Logged in with Google!",
        "register": "Account created successfully!",
        "sign_out": "Logged out successfully!",
        "add_vehicle": "Vehicle added successfully!",
        "update_vehicle": "Vehicle updated successfully!",
        "delete_vehicle": "Vehicle deleted successfully!",
        "book": "Vehicle booked successfully!",
    }

    FALLBACK_MESSAGES = {
        "sign_in": "Failed to login",
        "sign_in_with_provider": "Failed to login with Google",
        "register": "Failed to create account",
        "sign_out": "Failed to log out",
        "load_vehicles": "Failed to load vehicles",
        "load_vehicle": "Failed to load vehicle details",
        "load_bookings": "Failed to load your bookings",
        "add_vehicle": "Failed to add vehicle",
        "update_vehicle": "Failed to update vehicle",
        "delete_vehicle": "Failed to delete vehicle",
        "book": "Failed to book vehicle",
    }

    # Actions whose server/provider message is shown verbatim
    PASS_THROUGH_ACTIONS = {"sign_in", "sign_in_with_provider", "register", "sign_out", "book"}

    DEFAULT_MESSAGE = "Something went wrong, please try again"

    def __init__(self):
        self.patterns: List[ErrorPattern] = [
            ErrorPattern(
                pattern=r"timed out|timeout",
                user_message="The server is taking too long to respond. Please try again.",
                categories=["network", "auth"],
            ),
            ErrorPattern(
                pattern=r"network error|connect",
                user_message="Cannot reach the server. Check your connection and try again.",
                categories=["network", "auth"],
            ),
        ]

    def translate(self, error: Exception, action: Optional[str] = None) -> Notification:
        """Notification for a failed action."""
        return Notification(level="error", message=self._message_for(error, action))

    def success(self, action: str) -> Notification:
        return Notification(level="success", message=self.SUCCESS_MESSAGES.get(action, "Done"))

    def _message_for(self, error: Exception, action: Optional[str]) -> str:
        fallback = self.FALLBACK_MESSAGES.get(action, self.DEFAULT_MESSAGE)

        if not isinstance(error, MarketplaceError):
            logger.error(f"Unexpected error during {action or 'action'}: {error!r}")
            return fallback

        for pattern in self.patterns:
            if pattern.matches(error):
                return pattern.user_message

        if isinstance(error, ValidationError):
            # one message at a time, like the forms do
            return error.messages[0] if error.messages else fallback

        if isinstance(error, AuthError):
            return error.reason or fallback

        if isinstance(error, ApplicationError) and action in self.PASS_THROUGH_ACTIONS:
            return error.message or fallback

        if isinstance(error, NetworkError):
            logger.warning(f"Network failure during {action or 'action'}: {error.message}")

        return fallback


_translator = None


def get_translator() -> ErrorTranslator:
    """Get singleton translator instance."""
    global _translator
    if _translator is None:
        _translator = ErrorTranslator()
    return _translator
