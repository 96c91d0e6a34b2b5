"""Chat Session Manager and chat prompt."""

from core.chat.session import ChatSessionManager, ChatTurnResult

__all__ = ["ChatSessionManager", "ChatTurnResult"]
