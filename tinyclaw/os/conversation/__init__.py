from .tracker import ConversationTracker, ReplyOutcome, conversation_id

__all__ = ["ConversationTracker", "ReplyOutcome", "conversation_id"]
