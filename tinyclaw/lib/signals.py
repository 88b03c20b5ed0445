"""Reset signal: single-slot marker that drops backend conversation continuity."""

import logging
from pathlib import Path

log = logging.getLogger(__name__)


class ResetSignal:
    """Consume-once flag backed by a sentinel file.

    Any process may raise it; the next backend invocation consumes it. Removal
    of the sentinel is the consumption, so two consumers can never both win.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def request(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()

    def is_set(self) -> bool:
        return self.path.exists()

    def consume(self) -> bool:
        """Return True exactly once per request, clearing the flag."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        log.info("Reset signal consumed, starting fresh conversation")
        return True
