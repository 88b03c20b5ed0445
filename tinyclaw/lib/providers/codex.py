"""Codex provider: JSONL event stream, last completed agent message wins."""

from . import base
from .base import BaseProvider

FALLBACK_REPLY = "Sorry, I could not generate a response from Codex."


def _agent_message(event: dict) -> str | None:
    if event.get("type") != "item.completed":
        return None
    item = event.get("item")
    if not isinstance(item, dict) or item.get("type") != "agent_message":
        return None
    return item.get("text")


class Codex(BaseProvider):
    """Structured family.

    Event of interest:
        {"type": "item.completed", "item": {"type": "agent_message", "text": "..."}}
    """

    name = "codex"
    command = "codex"
    MODEL_IDS = {
        "gpt-5.2": "gpt-5.2",
        "gpt-5.3-codex": "gpt-5.3-codex",
    }

    @classmethod
    def build_args(cls, text: str, model: str, resume: bool) -> list[str]:
        args = [cls.command, "exec"]
        if resume:
            args.extend(["resume", "--last"])
        if model:
            args.extend(["--model", model])
        args.extend(["--json", "--full-auto", "--skip-git-repo-check", text])
        return args

    @classmethod
    def parse_output(cls, stdout: str) -> str:
        return base.last_matching(stdout, _agent_message) or FALLBACK_REPLY
