"""
Data Sanitizer
Version: 1.0

Masks sensitive data before it is logged.
- E-mail addresses (they appear in /my-vehicles and /my-bookings paths)
- Bearer and JWT tokens
- Passwords and refresh tokens in payloads
"""

import re
from typing import Any, Dict, Set


class DataSanitizer:
    """
    Sanitizes sensitive data for logs.

    Usage:
        sanitizer = DataSanitizer()
        safe_path = sanitizer.sanitize_for_log("/my-bookings/jane@example.com")
        safe_body = sanitizer.sanitize({"password": "..."})
    """

    PATTERNS = {
        # Bearer tokens
        "bearer": re.compile(r'Bearer\s+[A-Za-z0-9._-]+', re.I),

        # JWT tokens
        "jwt": re.compile(r'eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+'),

        # E-mail addresses, plain or percent-encoded @
        "email": re.compile(r'[a-zA-Z0-9._%+-]+(?:@|%40)[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}'),

        # Password fields
        "password": re.compile(r'(?:password|passwd|pwd)[=:]\s*[\'"]?([^\s\'"&]+)[\'"]?', re.I),
    }

    # Keys that should be completely redacted
    SENSITIVE_KEYS: Set[str] = {
        "password", "secret", "token", "authorization", "api_key", "apikey",
        "refresh_token", "id_token", "idtoken", "refreshtoken", "postbody",
    }

    # Keys to partially mask
    PARTIAL_MASK_KEYS: Set[str] = {"email", "useremail"}

    def __init__(self, mask_char: str = "*", show_last: int = 4):
        self.mask_char = mask_char
        self.show_last = show_last

    def sanitize(self, data: Any, depth: int = 0) -> Any:
        """Recursively sanitize dicts, lists and strings."""
        if depth > 10:
            return "[MAX_DEPTH]"

        if isinstance(data, dict):
            return self._sanitize_dict(data, depth)
        elif isinstance(data, list):
            return [self.sanitize(item, depth + 1) for item in data]
        elif isinstance(data, str):
            return self._sanitize_string(data)
        return data

    def _sanitize_dict(self, data: Dict, depth: int) -> Dict:
        result = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if any(s in key_lower for s in self.SENSITIVE_KEYS):
                result[key] = "[REDACTED]"
            elif key_lower in self.PARTIAL_MASK_KEYS and isinstance(value, str):
                result[key] = self.mask_email(value)
            else:
                result[key] = self.sanitize(value, depth + 1)
        return result

    def _sanitize_string(self, text: str) -> str:
        result = text
        for name, pattern in self.PATTERNS.items():
            if name in ("bearer", "password"):
                result = pattern.sub("[REDACTED]", result)
            elif name == "email":
                result = pattern.sub(lambda m: self.mask_email(m.group(0)), result)
            else:
                result = pattern.sub(lambda m: self._partial_mask(m.group(0)), result)
        return result

    def _partial_mask(self, value: Any) -> str:
        """Partially mask a value, showing only last N characters."""
        if value is None:
            return "[NONE]"

        s = str(value)
        if len(s) <= self.show_last:
            return self.mask_char * len(s)

        return self.mask_char * (len(s) - self.show_last) + s[-self.show_last:]

    def sanitize_for_log(self, message: str, context: Dict = None) -> str:
        safe_message = self._sanitize_string(message)
        if context:
            return f"{safe_message} | context={self.sanitize(context)}"
        return safe_message

    def mask_email(self, email: str) -> str:
        """j***e@example.com"""
        separator = "@" if "@" in email else "%40"
        if separator not in email:
            return self._partial_mask(email)

        local, domain = email.rsplit(separator, 1)
        if len(local) > 2:
            masked_local = local[0] + self.mask_char * (len(local) - 2) + local[-1]
        else:
            masked_local = self.mask_char * len(local)

        return f"{masked_local}{separator}{domain}"


_sanitizer = None


def get_sanitizer() -> DataSanitizer:
    """Get singleton sanitizer instance."""
    global _sanitizer
    if _sanitizer is None:
        _sanitizer = DataSanitizer()
    return _sanitizer


def sanitize(data: Any) -> Any:
    return get_sanitizer().sanitize(data)


def sanitize_log(message: str, context: Dict = None) -> str:
    return get_sanitizer().sanitize_for_log(message, context)
