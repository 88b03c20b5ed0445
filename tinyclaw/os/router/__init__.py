from .mentions import MentionRouter, MentionTarget, RootTarget

__all__ = ["MentionRouter", "MentionTarget", "RootTarget"]
