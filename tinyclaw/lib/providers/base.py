"""Shared invocation plumbing for backend CLIs."""

import json
import logging
import subprocess
import time
from collections.abc import Callable, Iterator
from pathlib import Path

from tinyclaw.core.models import AgentConfig
from tinyclaw.errors import BackendError

logger = logging.getLogger(__name__)

MAX_REPLY_LENGTH = 4000
TRUNCATION_MARKER = "\n\n[Response truncated...]"
# Room kept for the marker so truncated replies stay under downstream limits.
TRUNCATION_HEADROOM = 100
ESCAPE_LOOKBACK = 16


def run_command(args: list[str], cwd: str | None = None, timeout: float | None = None) -> str:
    """Run a backend CLI to completion and return stdout.

    Raises:
        BackendError: launch failure, timeout, or non-zero exit
    """
    if cwd:
        Path(cwd).mkdir(parents=True, exist_ok=True)
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise BackendError(f"{args[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise BackendError(f"{args[0]} failed to start: {e}") from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise BackendError(stderr or f"{args[0]} exited with code {result.returncode}")
    return result.stdout or ""


def iter_json_lines(output: str) -> Iterator[dict]:
    """Yield JSON objects from a JSONL stream, skipping lines that do not parse.

    Raises:
        BackendError: non-empty stream in which no line parses
    """
    parsed_any = False
    saw_content = False
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        saw_content = True
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            continue
        parsed_any = True
        if isinstance(obj, dict):
            yield obj
    if saw_content and not parsed_any:
        raise BackendError("Backend produced no parseable JSON events")


def last_matching(output: str, extract: Callable[[dict], str | None]) -> str | None:
    """Return the last non-empty value extract() pulls from the event stream."""
    found = None
    for event in iter_json_lines(output):
        text = extract(event)
        if text:
            found = text
    return found


def _safe_cut(text: str, limit: int) -> str:
    cut = text[:limit]
    # never end on half a surrogate pair
    if cut and "\ud800" <= cut[-1] <= "\udbff":
        cut = cut[:-1]
    # never end inside an ANSI escape sequence
    esc = cut.rfind("\x1b", max(0, len(cut) - ESCAPE_LOOKBACK))
    if esc != -1 and not any(ch.isalpha() for ch in cut[esc + 2 :]):
        cut = cut[:esc]
    return cut


def normalize_reply(text: str, max_length: int | None = None) -> str:
    max_length = max_length or MAX_REPLY_LENGTH
    text = (text or "").strip()
    if len(text) <= max_length:
        return text
    keep = max(max_length - TRUNCATION_HEADROOM, 0)
    return _safe_cut(text, keep) + TRUNCATION_MARKER


class BaseProvider:
    """Invocation contract shared by every backend family.

    Subclasses supply the command line (build_args) and the reply extraction
    (parse_output); invoke() owns reset consumption, execution and normalization.
    """

    name = ""
    command = ""
    MODEL_IDS: dict[str, str] = {}

    @classmethod
    def resolve_model(cls, model: str) -> str:
        """Map a short alias to a canonical id. Unknown names pass through."""
        return cls.MODEL_IDS.get(model, model or "")

    @classmethod
    def build_args(cls, text: str, model: str, resume: bool) -> list[str]:
        raise NotImplementedError

    @classmethod
    def parse_output(cls, stdout: str) -> str:
        raise NotImplementedError

    @classmethod
    def invoke(
        cls,
        agent: AgentConfig,
        text: str,
        *,
        reset,
        timeout: float | None = None,
        max_length: int | None = None,
    ) -> str:
        resume = not reset.consume()
        model = cls.resolve_model(agent.model)
        args = cls.build_args(text, model, resume)

        logger.info(
            f"Invoking {cls.name} for @{agent.agent_id} (model={model or 'default'}, resume={resume})"
        )
        started = time.monotonic()
        stdout = run_command(args, cwd=agent.working_directory, timeout=timeout)
        reply = cls.parse_output(stdout)
        logger.info(f"{cls.name} replied for @{agent.agent_id} in {time.monotonic() - started:.1f}s")

        return normalize_reply(reply, max_length)
