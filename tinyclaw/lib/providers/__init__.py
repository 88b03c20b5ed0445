"""Backend CLI adapters: Claude (plain text), Codex and OpenCode (JSON event streams).

Settings name providers by vendor (anthropic, openai, opencode); each maps to
exactly one adapter class.
"""

from tinyclaw.errors import BackendError

from .base import MAX_REPLY_LENGTH, TRUNCATION_MARKER, normalize_reply
from .claude import Claude
from .codex import Codex
from .opencode import OpenCode

PROVIDERS = {
    "anthropic": Claude,
    "openai": Codex,
    "opencode": OpenCode,
}

PROVIDER_NAMES = tuple(PROVIDERS)

APOLOGY_REPLY = "Sorry, I encountered an error processing your request."


def get_provider(name: str):
    """Get provider class by settings name.

    Raises:
        BackendError: If provider not found
    """
    try:
        return PROVIDERS[(name or "").lower()]
    except KeyError:
        raise BackendError(
            f"Unknown provider: {name} (expected one of: {', '.join(PROVIDER_NAMES)})"
        ) from None


__all__ = [
    "APOLOGY_REPLY",
    "MAX_REPLY_LENGTH",
    "PROVIDERS",
    "PROVIDER_NAMES",
    "TRUNCATION_MARKER",
    "Claude",
    "Codex",
    "OpenCode",
    "get_provider",
    "normalize_reply",
]
