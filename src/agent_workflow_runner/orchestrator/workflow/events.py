from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AgentTurnCompleted:
    """The agent backend finished replying in a conversation.

    Carries identity only. The reply itself is recovered by reading the cached
    conversation.
    """

    space_id: str
    conversation_id: str
