"""Break room message bus."""

from .break_room import (
    HUMAN_AGENT_ID,
    SYSTEM_AGENT_ID,
    BreakRoom,
    IBreakRoom,
    IBusParticipant,
    Subscriber,
)

__all__ = [
    "HUMAN_AGENT_ID",
    "SYSTEM_AGENT_ID",
    "BreakRoom",
    "IBreakRoom",
    "IBusParticipant",
    "Subscriber",
]
