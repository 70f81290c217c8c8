# backend/app/core/errors.py

"""Error taxonomy shared by the store, the agent bridge and the HTTP layer.

NotFoundError and StorageError come from the conversation store,
AgentTransportError from the agent bridge. AgentTurnError is not raised:
the bridge logs it and degrades the turn to a fallback reply.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


class WorkoutAgentError(Exception):
    """Base error carrying a user-facing message and optional details."""

    def __init__(self, message: str, details: str = ""):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(WorkoutAgentError):
    """A referenced conversation or message does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found", details=identifier)


class StorageError(WorkoutAgentError):
    """Constraint violation or I/O failure in the durable store."""


class AgentTransportError(WorkoutAgentError):
    """The agent runtime's event stream could not be established or read."""


@dataclass
class AgentTurnError:
    """A failed turn as reported by the agent runtime itself."""

    subtype: str
    num_turns: Optional[int] = None
    errors: List[Any] = field(default_factory=list)

    def __str__(self) -> str:
        detail = f" ({self.errors})" if self.errors else ""
        return f"{self.subtype} after {self.num_turns} turns{detail}"
