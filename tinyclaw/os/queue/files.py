"""Queue directories: incoming -> processing -> (deleted | incoming | failed), outgoing."""

import contextlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from tinyclaw.core.models import InboundMessage, OutboundMessage
from tinyclaw.errors import ClaimConflict, InvalidMessage, IOFailure
from tinyclaw.lib import ids, paths

log = logging.getLogger(__name__)

HEARTBEAT_CHANNEL = "heartbeat"
INTERNAL_PREFIX = "internal"


@dataclass(frozen=True)
class QueueFile:
    name: str
    path: Path
    time: float


class QueueDirs:
    def __init__(
        self,
        incoming: Path | None = None,
        processing: Path | None = None,
        outgoing: Path | None = None,
        failed: Path | None = None,
    ):
        self.incoming = Path(incoming or paths.queue_incoming())
        self.processing = Path(processing or paths.queue_processing())
        self.outgoing = Path(outgoing or paths.queue_outgoing())
        self.failed = Path(failed or paths.queue_failed())

    @classmethod
    def under(cls, root: Path) -> "QueueDirs":
        return cls(root / "incoming", root / "processing", root / "outgoing", root / "failed")

    def ensure(self) -> None:
        for directory in (self.incoming, self.processing, self.outgoing, self.failed):
            directory.mkdir(parents=True, exist_ok=True)

    def pending(self) -> list[QueueFile]:
        """Incoming *.json files, oldest mtime first."""
        files = []
        for entry in self.incoming.glob("*.json"):
            try:
                mtime = entry.stat().st_mtime
            except FileNotFoundError:
                continue
            files.append(QueueFile(name=entry.name, path=entry, time=mtime))
        return sorted(files, key=lambda f: (f.time, f.name))

    def claim(self, path: Path) -> Path:
        """Move an incoming file into processing; the rename is the lock.

        Raises:
            ClaimConflict: file no longer in incoming
        """
        target = self.processing / path.name
        try:
            os.rename(path, target)
        except FileNotFoundError as e:
            raise ClaimConflict(f"{path.name} already claimed") from e
        return target

    def read(self, path: Path) -> InboundMessage:
        """Parse a claimed file.

        Raises:
            InvalidMessage: not JSON or missing required fields
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidMessage(f"{path.name}: {e}") from e
        return InboundMessage.from_wire(data)

    def finish(self, processing_path: Path) -> None:
        processing_path.unlink(missing_ok=True)

    def requeue(self, processing_path: Path) -> None:
        """Return a claimed file to incoming for retry on the next poll.

        Raises:
            IOFailure: file could not be moved back
        """
        try:
            os.rename(processing_path, self.incoming / processing_path.name)
        except FileNotFoundError:
            return
        except OSError as e:
            raise IOFailure(f"Failed to move {processing_path.name} back: {e}") from e

    def reject(self, processing_path: Path) -> None:
        """Park an unreadable file in failed/ so it is not retried forever."""
        try:
            os.rename(processing_path, self.failed / processing_path.name)
        except OSError as e:
            raise IOFailure(f"Failed to move {processing_path.name} to failed: {e}") from e

    def write_outbound(self, message: OutboundMessage) -> Path:
        if message.channel == HEARTBEAT_CHANNEL:
            name = f"{message.message_id}.json"
        else:
            name = f"{message.channel}_{message.message_id}_{ids.now_ms()}.json"
        return _write_json(self.outgoing / name, message.to_wire())

    def enqueue(self, message: InboundMessage) -> Path:
        if message.is_delegated:
            name = f"{INTERNAL_PREFIX}_{message.message_id}_{ids.now_ms()}.json"
        else:
            name = f"{message.channel}_{message.message_id}_{ids.now_ms()}.json"
        return _write_json(self.incoming / name, message.to_wire())

    def counts(self) -> dict[str, int]:
        return {
            name: len(list(directory.glob("*.json"))) if directory.exists() else 0
            for name, directory in (
                ("incoming", self.incoming),
                ("processing", self.processing),
                ("outgoing", self.outgoing),
                ("failed", self.failed),
            )
        }


def _write_json(target: Path, data: dict) -> Path:
    """Write via temp file + os.replace so readers never see a partial file.

    Raises:
        IOFailure: write or rename failed
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, target)
    except OSError as e:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise IOFailure(f"Failed to write {target.name}: {e}") from e
    return target
