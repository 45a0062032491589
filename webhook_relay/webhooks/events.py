"""Hook envelope payloads.

Some destinations do not accept the raw webhook body; they expect a hook
envelope naming the integration the event came from (for example
"notetaker:krisp" or "complaint-form") and carrying the raw text.
"""

import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WakeMode(str, Enum):
    """When the destination agent should act on the delivered event."""

    NOW = "now"
    NEXT_HEARTBEAT = "next-heartbeat"


class HookEnvelope(BaseModel):
    """Fixed-shape record sent to envelope-expecting destinations."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Event name tag, e.g. notetaker:krisp")
    message: str = Field(..., description="Inbound body decoded as text")
    deliver: bool = Field(default=True, description="Deliver to the agent's channel")
    wake_mode: WakeMode = Field(
        default=WakeMode.NOW,
        alias="wakeMode",
        description="Wake/priority hint",
    )

    def to_json_dict(self) -> dict[str, object]:
        """Convert to the wire shape."""
        return {
            "name": self.name,
            "message": self.message,
            "deliver": self.deliver,
            "wakeMode": self.wake_mode.value,
        }

    def to_bytes(self) -> bytes:
        """Serialize for the outbound request body."""
        return json.dumps(self.to_json_dict()).encode("utf-8")


def build_envelope(
    name: str,
    body: bytes,
    *,
    deliver: bool = True,
    wake_mode: WakeMode = WakeMode.NOW,
) -> HookEnvelope:
    """Wrap a raw inbound body into a hook envelope.

    Never fails on the body: bytes that are not valid UTF-8 are decoded
    with replacement characters.

    Args:
        name: Event name tag.
        body: Raw inbound body.
        deliver: Delivery flag.
        wake_mode: Wake/priority hint.

    Returns:
        HookEnvelope ready to serialize.
    """
    return HookEnvelope(
        name=name,
        message=body.decode("utf-8", errors="replace"),
        deliver=deliver,
        wake_mode=wake_mode,
    )
