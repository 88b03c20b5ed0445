"""Claude provider: one-shot CLI, plain-text reply."""

from .base import BaseProvider


class Claude(BaseProvider):
    """Simple family: stdout is the reply.

    Continuity comes from `-c`, which resumes the most recent conversation in
    the agent's working directory.
    """

    name = "claude"
    command = "claude"
    MODEL_IDS = {
        "sonnet": "claude-sonnet-4-5",
        "opus": "claude-opus-4-6",
        "claude-sonnet-4-5": "claude-sonnet-4-5",
        "claude-opus-4-6": "claude-opus-4-6",
    }

    @classmethod
    def build_args(cls, text: str, model: str, resume: bool) -> list[str]:
        args = [cls.command, "--dangerously-skip-permissions"]
        if model:
            args.extend(["--model", model])
        if resume:
            args.append("-c")
        args.extend(["-p", text])
        return args

    @classmethod
    def parse_output(cls, stdout: str) -> str:
        return stdout.strip()
