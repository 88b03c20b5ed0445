"""OpenCode provider: JSON event stream of text parts."""

from . import base
from .base import BaseProvider

FALLBACK_REPLY = "Sorry, I could not generate a response from OpenCode."


def _text_part(event: dict) -> str | None:
    if event.get("type") != "text":
        return None
    part = event.get("part")
    if not isinstance(part, dict):
        return None
    return part.get("text")


class OpenCode(BaseProvider):
    name = "opencode"
    command = "opencode"
    MODEL_IDS = {
        "opencode/claude-opus-4-6": "opencode/claude-opus-4-6",
        "opencode/claude-sonnet-4-5": "opencode/claude-sonnet-4-5",
        "opencode/gemini-3-flash": "opencode/gemini-3-flash",
        "opencode/gemini-3-pro": "opencode/gemini-3-pro",
        "anthropic/claude-opus-4-6": "anthropic/claude-opus-4-6",
        "anthropic/claude-sonnet-4-5": "anthropic/claude-sonnet-4-5",
        "openai/gpt-5.2": "openai/gpt-5.2",
        "openai/gpt-5.3-codex": "openai/gpt-5.3-codex",
        "sonnet": "opencode/claude-sonnet-4-5",
        "opus": "opencode/claude-opus-4-6",
    }

    @classmethod
    def build_args(cls, text: str, model: str, resume: bool) -> list[str]:
        args = [cls.command, "run", "--format", "json"]
        if resume:
            args.append("--continue")
        if model:
            args.extend(["--model", model])
        args.append(text)
        return args

    @classmethod
    def parse_output(cls, stdout: str) -> str:
        return base.last_matching(stdout, _text_part) or FALLBACK_REPLY
