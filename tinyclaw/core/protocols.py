from typing import Protocol, runtime_checkable

from tinyclaw.core.models import AgentConfig


@runtime_checkable
class Provider(Protocol):
    """Backend CLI protocol (Claude, Codex, OpenCode).

    Invocation:
        invoke -> build_args -> run -> parse_output -> normalized reply
    """

    name: str
    command: str

    def resolve_model(self, model: str) -> str: ...

    def build_args(self, text: str, model: str, resume: bool) -> list[str]: ...

    def parse_output(self, stdout: str) -> str: ...

    def invoke(
        self,
        agent: AgentConfig,
        text: str,
        *,
        reset,
        timeout: float | None = None,
        max_length: int | None = None,
    ) -> str: ...
