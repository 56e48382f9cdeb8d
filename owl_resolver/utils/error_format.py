"""Error message formatting for CLI output.

Ensures exceptions always have a useful display message, even when their
str() representation is empty, and that dynamic text is safe to embed in
Rich markup.
"""

from __future__ import annotations

from rich.markup import escape as _escape_markup

from ..errors import ExternalToolError

# Friendly messages for exception types known to have empty str()
FRIENDLY_MESSAGES: dict[type, str] = {
    TimeoutError: "Operation timed out.",
    KeyboardInterrupt: "Operation interrupted by user.",
    PermissionError: "Permission denied.",
}


def format_error_message(e: BaseException, *, include_type: bool = True) -> str:
    """Format an exception into a non-empty display message.

    Examples:
        >>> format_error_message(ValueError("invalid input"))
        'ValueError: invalid input'

        >>> format_error_message(ValueError("invalid input"), include_type=False)
        'invalid input'
    """
    error_str = str(e)
    error_type = type(e).__name__

    if error_str:
        if include_type and error_type not in error_str:
            return f"{error_type}: {error_str}"
        return error_str

    for exc_type, friendly_msg in FRIENDLY_MESSAGES.items():
        if isinstance(e, exc_type):
            return f"{error_type}: {friendly_msg}"

    return f"{error_type}: (no additional details)"


def format_error_details(e: BaseException) -> list[str]:
    """Extra lines worth showing under the headline, if any."""
    if isinstance(e, ExternalToolError):
        details = []
        if e.command:
            details.append(f"command: {' '.join(e.command)}")
        if e.returncode is not None:
            details.append(f"exit code: {e.returncode}")
        return details
    return []


def escape_markup(value: object) -> str:
    """Escape a value for safe interpolation into Rich markup strings."""
    return _escape_markup(str(value))
