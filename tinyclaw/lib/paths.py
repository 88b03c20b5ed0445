import os
from pathlib import Path


def home() -> Path:
    """Resolve the tinyclaw home: $TINYCLAW_HOME, ./.tinyclaw with settings, else ~/.tinyclaw."""
    override = os.environ.get("TINYCLAW_HOME")
    if override:
        return Path(override).expanduser()
    local = Path.cwd() / ".tinyclaw"
    if (local / "settings.json").exists():
        return local
    return Path.home() / ".tinyclaw"


def queue_dir() -> Path:
    return home() / "queue"


def queue_incoming() -> Path:
    return queue_dir() / "incoming"


def queue_processing() -> Path:
    return queue_dir() / "processing"


def queue_outgoing() -> Path:
    return queue_dir() / "outgoing"


def queue_failed() -> Path:
    return queue_dir() / "failed"


def logs_dir() -> Path:
    return home() / "logs"


def log_file() -> Path:
    return logs_dir() / "queue.log"


def settings_file() -> Path:
    return home() / "settings.json"


def config_file() -> Path:
    return home() / "config.yaml"


def reset_flag() -> Path:
    return home() / "reset_flag"


def default_workspace() -> Path:
    return Path.home() / "tinyclaw-workspace"
