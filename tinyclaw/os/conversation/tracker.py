"""Conversation tracking: delegation bookkeeping, cycle cap, finalization.

States: DISPATCHED -> AWAITING_REPLIES -> FINALIZING -> DONE, with ABORTED
reached when a conversation outlives its wall-clock budget.

The root agent's reply is the outbound text. Delegated replies are recorded in
`responses` and closed off, never stitched into the root text.
"""

import copy
import logging
import re
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from tinyclaw.core.models import (
    ChainStep,
    Conversation,
    ConversationState,
    InboundMessage,
    OutboundMessage,
)
from tinyclaw.errors import DelegationCapExceeded, OrphanedDelegation
from tinyclaw.lib import ids
from tinyclaw.os.router.mentions import MentionRouter, MentionTarget, RootTarget

log = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 50
DEFAULT_TIMEOUT_SECONDS = 900.0
CLOSED_HISTORY = 1000

DELEGATION_TEMPLATE = "[Message from teammate @{from_agent}]:\n{task}"
CAP_NOTE = "\n\n[Delegation limit reached: {count} mention(s) not sent, {limit} turns max.]"
TIMEOUT_REPLY = "Sorry, this conversation timed out before a reply was ready."
SEND_FILE_PATTERN = re.compile(r"\[send_file:\s*([^\]]+)\]")


@dataclass
class ReplyOutcome:
    delegations: list[InboundMessage] = field(default_factory=list)
    outbound: OutboundMessage | None = None


def conversation_id(message: InboundMessage) -> str:
    return f"{message.channel}_{message.message_id}"


def collect_files(reply: str, files: set[str]) -> str:
    """Strip [send_file: path] tags from reply, adding existing paths to files."""

    def _take(match: re.Match) -> str:
        path = match.group(1).strip()
        if Path(path).expanduser().is_file():
            files.add(path)
        else:
            log.warning(f"send_file target does not exist: {path}")
        return ""

    return SEND_FILE_PATTERN.sub(_take, reply).strip()


class ConversationTracker:
    def __init__(
        self,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_messages = max_messages
        self.timeout = timeout
        self.clock = clock
        self.conversations: dict[str, Conversation] = {}
        self._closed: OrderedDict[str, ConversationState] = OrderedDict()

    def start(self, message: InboundMessage, target: RootTarget) -> Conversation:
        cid = conversation_id(message)
        if cid in self.conversations:
            log.warning(f"Conversation {cid} restarted, dropping previous state")
        self._closed.pop(cid, None)

        conversation = Conversation(
            id=cid,
            channel=message.channel,
            sender=message.sender,
            sender_id=message.sender_id,
            original_message=message.message,
            message_id=message.message_id,
            root_agent=target.agent_id,
            start_time=self.clock(),
            max_messages=self.max_messages,
            team_context=target.team_context,
            files=set(message.files),
        )
        self.conversations[cid] = conversation
        if target.team_context:
            team_id = target.team_context.team_id
            log.info(f"Conversation {cid} routed to team @{team_id} via leader @{target.agent_id}")
        return conversation

    def get(self, cid: str | None) -> Conversation | None:
        if not cid:
            return None
        return self.conversations.get(cid)

    def is_closed(self, cid: str) -> bool:
        return cid in self._closed

    def is_answered(self, conversation: Conversation, message: InboundMessage) -> bool:
        return message.message_id in conversation.answered

    @contextmanager
    def transaction(self, cid: str) -> Iterator[None]:
        """Restore conversation cid to its prior state if the block raises.

        Covers both the live record and the closed history, so a turn whose
        files could not be written can be retried from scratch.
        """
        live = self.conversations.get(cid)
        saved = copy.deepcopy(live) if live is not None else None
        closed_state = self._closed.get(cid)
        try:
            yield
        except Exception:
            if saved is not None:
                self.conversations[cid] = saved
            else:
                self.conversations.pop(cid, None)
            if closed_state is not None:
                self._closed[cid] = closed_state
            else:
                self._closed.pop(cid, None)
            log.debug(f"Conversation {cid} rolled back")
            raise

    def resolve(self, message: InboundMessage) -> Conversation | None:
        """Find the live conversation for a delegated message.

        Returns None when the id was never seen by this process (restart).

        Raises:
            OrphanedDelegation: conversation already finalized or timed out
        """
        conversation = self.get(message.conversation_id)
        if conversation is not None:
            return conversation
        if self.is_closed(message.conversation_id):
            state = self._closed[message.conversation_id].value
            raise OrphanedDelegation(
                f"Conversation {message.conversation_id} is {state}, "
                f"dropping reply from @{message.agent} to @{message.from_agent}"
            )
        return None

    def record_reply(
        self,
        conversation: Conversation,
        message: InboundMessage,
        agent_id: str,
        reply: str,
        router: MentionRouter,
    ) -> ReplyOutcome:
        """Apply one agent turn to the conversation.

        `message` is the inbound that produced the reply: the root message or a
        delegated one. Mentions in the reply become delegations unless the
        turn cap forbids it.
        """
        if message.is_delegated:
            if self.is_answered(conversation, message):
                log.info(f"Duplicate reply for delegation {message.message_id}, ignoring")
                return ReplyOutcome()

        reply = collect_files(reply, conversation.files)
        outcome = ReplyOutcome()

        targets = router.route(reply)
        if targets:
            try:
                self._reserve(conversation, len(targets))
            except DelegationCapExceeded as e:
                log.warning(f"Conversation {conversation.id}: {e}")
                reply += CAP_NOTE.format(count=len(targets), limit=conversation.max_messages)
            else:
                outcome.delegations = [
                    self._delegate(conversation, agent_id, target, reply) for target in targets
                ]
                conversation.state = ConversationState.AWAITING_REPLIES

        conversation.responses.append(ChainStep(agent_id=agent_id, response=reply))

        if message.is_delegated:
            self._settle(conversation, message)
        else:
            conversation.root_reply = reply

        if conversation.ready:
            outcome.outbound = self._finalize(conversation, ConversationState.DONE)
        return outcome

    def expire(self, now: float | None = None) -> list[OutboundMessage]:
        """Force-finalize conversations older than the timeout."""
        now = self.clock() if now is None else now
        expired = [
            conversation
            for conversation in self.conversations.values()
            if now - conversation.start_time >= self.timeout
        ]

        outbound = []
        for conversation in expired:
            for delegation_id, (from_agent, to_agent) in conversation.open_delegations.items():
                log.warning(
                    f"Conversation {conversation.id} timed out, abandoning delegation "
                    f"{delegation_id} @{from_agent} -> @{to_agent}"
                )
            outbound.append(self._finalize(conversation, ConversationState.ABORTED))
        return outbound

    def standalone_reply(
        self, message: InboundMessage, agent_id: str | None, reply: str
    ) -> OutboundMessage:
        """Outbound for a delegated message whose conversation this process never saw."""
        files: set[str] = set(message.files)
        reply = collect_files(reply, files)
        return OutboundMessage(
            channel=message.channel,
            sender=message.sender,
            message=reply,
            original_message=message.message,
            timestamp=ids.now_ms(),
            message_id=message.message_id,
            agent=agent_id,
            files=tuple(sorted(files)),
        )

    def _reserve(self, conversation: Conversation, count: int) -> None:
        if conversation.total_messages + count > conversation.max_messages:
            raise DelegationCapExceeded(count, conversation.total_messages, conversation.max_messages)
        conversation.total_messages += count

    def _delegate(
        self,
        conversation: Conversation,
        from_agent: str,
        target: MentionTarget,
        reply: str,
    ) -> InboundMessage:
        delegation_id = ids.delegation_id(conversation.id)
        conversation.pending += 1
        conversation.outgoing_mentions[from_agent] = conversation.outgoing_mentions.get(from_agent, 0) + 1
        conversation.open_delegations[delegation_id] = (from_agent, target.agent_id)

        log.info(
            f"Conversation {conversation.id}: @{from_agent} -> @{target.agent_id} "
            f"({ids.short_id(delegation_id)})"
        )
        return InboundMessage(
            channel=conversation.channel,
            sender=conversation.sender,
            sender_id=conversation.sender_id,
            message=DELEGATION_TEMPLATE.format(from_agent=from_agent, task=target.task or reply),
            timestamp=ids.now_ms(),
            message_id=delegation_id,
            agent=target.agent_id,
            conversation_id=conversation.id,
            from_agent=from_agent,
        )

    def _settle(self, conversation: Conversation, message: InboundMessage) -> None:
        """Close the delegation that produced this reply."""
        conversation.answered.add(message.message_id)
        if conversation.open_delegations.pop(message.message_id, None) is None:
            log.warning(f"Conversation {conversation.id}: reply to unknown delegation {message.message_id}")
            return

        conversation.pending -= 1
        from_agent = message.from_agent
        remaining = conversation.outgoing_mentions.get(from_agent, 0) - 1
        if remaining > 0:
            conversation.outgoing_mentions[from_agent] = remaining
        else:
            conversation.outgoing_mentions.pop(from_agent, None)
            log.info(f"Conversation {conversation.id}: @{from_agent} drained")

    def _finalize(self, conversation: Conversation, final_state: ConversationState) -> OutboundMessage:
        conversation.state = ConversationState.FINALIZING
        text = conversation.root_reply if conversation.root_reply is not None else TIMEOUT_REPLY
        outbound = OutboundMessage(
            channel=conversation.channel,
            sender=conversation.sender,
            message=text,
            original_message=conversation.original_message,
            timestamp=ids.now_ms(),
            message_id=conversation.message_id,
            agent=conversation.root_agent,
            files=tuple(sorted(conversation.files)),
        )
        conversation.state = final_state
        self._close(conversation)
        log.info(
            f"Conversation {conversation.id} {final_state.value}: "
            f"{len(conversation.responses)} turn(s), {conversation.total_messages} dispatched"
        )
        return outbound

    def _close(self, conversation: Conversation) -> None:
        self.conversations.pop(conversation.id, None)
        self._closed[conversation.id] = conversation.state
        while len(self._closed) > CLOSED_HISTORY:
            self._closed.popitem(last=False)
