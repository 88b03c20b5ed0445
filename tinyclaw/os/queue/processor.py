"""Queue processor: one message, one backend invocation at a time.

The backends' shared conversational context is not safe for concurrent use,
so every invocation in the system goes through this single consumer loop.
Delegated sub-tasks are queued as ordinary files and drained before the next
unrelated message is started.
"""

import logging
import time
from collections import deque
from collections.abc import Callable
from pathlib import Path

from tinyclaw.core.models import InboundMessage, OutboundMessage
from tinyclaw.errors import (
    BackendError,
    ClaimConflict,
    ConfigError,
    InvalidMessage,
    IOFailure,
    OrphanedDelegation,
    TinyclawError,
)
from tinyclaw.lib import config, paths
from tinyclaw.lib.providers import APOLOGY_REPLY, get_provider
from tinyclaw.lib.settings import Settings, load_settings
from tinyclaw.lib.signals import ResetSignal
from tinyclaw.os.conversation.tracker import ConversationTracker, conversation_id
from tinyclaw.os.router.mentions import MentionRouter

from .files import QueueDirs

log = logging.getLogger(__name__)

PREVIEW_CHARS = 50
NO_AGENT_REPLY = "Sorry, no agent is configured to handle this message."


def preview(text: str) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= PREVIEW_CHARS else f"{text[:PREVIEW_CHARS]}..."


def with_attachments(text: str, files: tuple[str, ...]) -> str:
    if not files:
        return text
    return "\n".join([text, *(f"[file: {path}]" for path in files)])


class QueueProcessor:
    def __init__(
        self,
        queue: QueueDirs | None = None,
        reset: ResetSignal | None = None,
        tracker: ConversationTracker | None = None,
        settings_loader: Callable[[], Settings] = load_settings,
        poll_interval: float | None = None,
        invoke_timeout: float | None = None,
        max_reply_length: int | None = None,
    ):
        cfg = config.load_config()
        self.queue = queue or QueueDirs()
        self.reset = reset or ResetSignal(paths.reset_flag())
        self.tracker = tracker or ConversationTracker(
            max_messages=int(cfg["max_messages"]),
            timeout=float(cfg["conversation_timeout"]),
        )
        self.settings_loader = settings_loader
        self.poll_interval = float(poll_interval if poll_interval is not None else cfg["poll_interval"])
        self.invoke_timeout = float(invoke_timeout if invoke_timeout is not None else cfg["invoke_timeout"])
        self.max_reply_length = int(max_reply_length or cfg["max_reply_length"])
        self.settings = Settings()
        self._running = False

    def run(self) -> None:
        """Poll forever. Errors listing the queue itself end the loop."""
        self.queue.ensure()
        self._running = True
        log.info("Queue processor started")
        log.info(f"Watching: {self.queue.incoming}")
        try:
            while self._running:
                self.poll()
                time.sleep(self.poll_interval)
        finally:
            log.info("Queue processor stopped")

    def stop(self) -> None:
        """Finish the current message, then leave run()."""
        self._running = False

    def poll(self) -> int:
        """Process every pending file, oldest first. Returns files handled."""
        self.expire()
        files = self.queue.pending()
        if not files:
            return 0

        log.debug(f"Found {len(files)} message(s) in queue")
        try:
            self.settings = self.settings_loader()
        except ConfigError as e:
            log.error(f"Settings unreadable, keeping previous: {e}")
        work = deque(f.path for f in files)
        handled = 0
        while work:
            path = work.popleft()
            spawned = self.process_file(path)
            handled += 1
            # delegations run before anything else so the conversation completes first
            work.extendleft(reversed(spawned))
            self.expire()
        return handled

    def expire(self) -> None:
        for outbound in self.tracker.expire():
            self._write_outbound(outbound)

    def process_file(self, path: Path) -> list[Path]:
        """Claim, handle and clean up one inbound file. Returns delegated files queued."""
        try:
            processing = self.queue.claim(path)
        except ClaimConflict as e:
            log.debug(f"Skipping: {e}")
            return []

        try:
            message = self.queue.read(processing)
        except InvalidMessage as e:
            log.error(f"Rejecting malformed message: {e}")
            self._reject(processing)
            return []

        log.info(f"Processing [{message.channel}] from {message.sender}: {preview(message.message)}")
        spawned: list[Path] = []
        try:
            with self.tracker.transaction(self._conversation_key(message)):
                outbound, delegations = self.handle(message)
                for delegation in delegations:
                    spawned.append(self.queue.enqueue(delegation))
                for reply in outbound:
                    self.queue.write_outbound(reply)
                    log.info(
                        f"✓ Response ready [{reply.channel}] {reply.sender} ({len(reply.message)} chars)"
                    )
        except (TinyclawError, OSError) as e:
            log.error(f"Processing error [{message.channel}] {preview(message.message)}: {e}")
            self._discard(spawned)
            self._requeue(processing)
            return []
        except Exception:
            log.exception(f"Unexpected error [{message.channel}] {preview(message.message)}")
            self._discard(spawned)
            self._reject(processing)
            return []

        self.queue.finish(processing)
        return spawned

    def handle(self, message: InboundMessage) -> tuple[list[OutboundMessage], list[InboundMessage]]:
        """Run one agent turn for message. Returns (outbound replies, delegations)."""
        router = MentionRouter(self.settings)

        if message.is_delegated:
            return self._handle_delegated(message, router)

        target = router.resolve_root(message)
        if target is None:
            log.error(f"No agent available for [{message.channel}] {preview(message.message)}")
            return [self.tracker.standalone_reply(message, None, NO_AGENT_REPLY)], []

        conversation = self.tracker.start(message, target)
        reply = self.invoke(target.agent_id, with_attachments(target.text, message.files))
        outcome = self.tracker.record_reply(conversation, message, target.agent_id, reply, router)
        return ([outcome.outbound] if outcome.outbound else []), outcome.delegations

    def invoke(self, agent_id: str, text: str) -> str:
        """Invoke agent's backend. Backend failures become an apology reply."""
        agent = self.settings.get_agent(agent_id)
        if agent is None:
            log.error(f"Agent '{agent_id}' is not configured")
            return APOLOGY_REPLY
        try:
            provider = get_provider(agent.provider)
            return provider.invoke(
                agent,
                text,
                reset=self.reset,
                timeout=self.invoke_timeout,
                max_length=self.max_reply_length,
            )
        except BackendError as e:
            log.error(f"{agent.provider} error for @{agent_id}: {e}")
            return APOLOGY_REPLY

    def _handle_delegated(
        self, message: InboundMessage, router: MentionRouter
    ) -> tuple[list[OutboundMessage], list[InboundMessage]]:
        try:
            conversation = self.tracker.resolve(message)
        except OrphanedDelegation as e:
            log.warning(f"Orphaned delegation: {e}")
            return [], []

        if conversation is not None and self.tracker.is_answered(conversation, message):
            log.info(f"Duplicate delegation {message.message_id}, already answered")
            return [], []

        agent_id = (message.agent or "").lower()
        if conversation is None:
            log.warning(
                f"Orphaned delegation {message.message_id}: conversation "
                f"{message.conversation_id} unknown, answering sender directly"
            )
            reply = self.invoke(agent_id, with_attachments(message.message, message.files))
            return [self.tracker.standalone_reply(message, agent_id, reply)], []

        reply = self.invoke(agent_id, with_attachments(message.message, message.files))
        outcome = self.tracker.record_reply(conversation, message, agent_id, reply, router)
        return ([outcome.outbound] if outcome.outbound else []), outcome.delegations

    def _conversation_key(self, message: InboundMessage) -> str:
        return message.conversation_id if message.is_delegated else conversation_id(message)

    def _discard(self, spawned: list[Path]) -> None:
        """Remove delegation files written by a turn that is being retried."""
        for path in spawned:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.error(f"Failed to remove {path.name}: {e}")

    def _write_outbound(self, outbound: OutboundMessage) -> None:
        try:
            self.queue.write_outbound(outbound)
        except (IOFailure, OSError) as e:
            log.error(f"Failed to write outbound [{outbound.channel}] {outbound.message_id}: {e}")

    def _requeue(self, processing: Path) -> None:
        try:
            self.queue.requeue(processing)
        except IOFailure as e:
            log.error(str(e))

    def _reject(self, processing: Path) -> None:
        try:
            self.queue.reject(processing)
        except IOFailure as e:
            log.error(str(e))
