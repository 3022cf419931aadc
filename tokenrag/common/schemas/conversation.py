"""
Conversation message schema.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class Role(str, Enum):
    """Conversation roles understood by the completion provider"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    """A single turn in a conversation"""
    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        return cls(
            role=Role(data.get("role", "user")),
            content=str(data.get("content", "")),
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    def to_prompt_message(self) -> Dict[str, str]:
        """Role/content pair in the completion provider's message format"""
        return {"role": self.role.value, "content": self.content}
