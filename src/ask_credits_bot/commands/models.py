"""Inbound interaction and outbound reply models."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from ask_credits_bot.session.models import ContextKind


@dataclass(slots=True)
class Reply:
    """A message sent back to the chat platform."""

    content: str
    context_id: str
    ephemeral: bool = False


@dataclass
class Interaction:
    """A slash command invocation from a user.

    Replies are collected on the interaction and handed back to the
    platform adapter once the command finishes.
    """

    command: str
    user_id: str
    channel_id: str
    channel_kind: str = ContextKind.GUILD
    guild_id: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    replies: list[Reply] = field(default_factory=list)

    @property
    def replied(self) -> bool:
        return bool(self.replies)

    async def reply(self, content: str, ephemeral: bool = False) -> None:
        """Reply in the channel the command was issued from."""
        self.replies.append(Reply(content=content, context_id=self.channel_id, ephemeral=ephemeral))

    async def send_to(self, context_id: str, content: str) -> None:
        """Deliver a message to an arbitrary context (channel or DM)."""
        self.replies.append(Reply(content=content, context_id=context_id))


class InteractionRequest(BaseModel):
    """JSON body accepted by the interactions endpoint."""

    command: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    channel_kind: ContextKind = ContextKind.GUILD
    guild_id: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    def to_interaction(self) -> Interaction:
        return Interaction(
            command=self.command,
            user_id=self.user_id,
            channel_id=self.channel_id,
            channel_kind=self.channel_kind,
            guild_id=self.guild_id,
            options=dict(self.options),
        )
