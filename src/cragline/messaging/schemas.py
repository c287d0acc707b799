"""Conversation and message documents, plus their display rows."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cragline.schemas import StoreModel, utcnow
from cragline.users.schemas import User

CONVERSATIONS = "conversations"


def messages_path(conversation_id: str) -> str:
    return f"{CONVERSATIONS}/{conversation_id}/messages"


def conversation_id(participants: list[str]) -> str:
    """Stable id for a participant set, so creating a conversation is idempotent."""
    return "_".join(sorted(participants))


class Conversation(StoreModel):
    id: str
    participants: list[str]
    last_message: str = ""
    last_message_timestamp: datetime = Field(default_factory=utcnow)
    last_message_sender_id: str = ""
    unread_counts: dict[str, int] = Field(default_factory=dict)

    def other_participant_id(self, user_id: str) -> str | None:
        return next((p for p in self.participants if p != user_id), None)

    def unread_count(self, user_id: str) -> int:
        return self.unread_counts.get(user_id, 0)

    def has_unread(self, user_id: str) -> bool:
        return self.unread_count(user_id) > 0


class Message(StoreModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str
    sender_id: str
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    read_status: dict[str, bool] = Field(default_factory=dict)
    media_url: str | None = Field(None, alias="mediaURL")

    def is_read_by(self, user_id: str) -> bool:
        return self.read_status.get(user_id, False)

    def is_sent_by(self, user_id: str) -> bool:
        return self.sender_id == user_id


class ConversationRow(BaseModel):
    """One line of the conversation list."""

    model_config = ConfigDict(frozen=True)

    id: str
    last_message: str
    last_message_timestamp: datetime
    unread_count: int
    is_last_message_from_current_user: bool
    participant: User | None = None

    @property
    def display_name(self) -> str:
        return self.participant.full_name if self.participant else "Unknown User"

    @property
    def initial(self) -> str:
        return self.participant.initial if self.participant else "?"

    @classmethod
    def build(cls, conversation: Conversation, current_user_id: str, users: dict[str, User]) -> ConversationRow:
        other = conversation.other_participant_id(current_user_id)
        return cls(
            id=conversation.id,
            last_message=conversation.last_message,
            last_message_timestamp=conversation.last_message_timestamp,
            unread_count=conversation.unread_count(current_user_id),
            is_last_message_from_current_user=conversation.last_message_sender_id == current_user_id,
            participant=users.get(other) if other else None,
        )


class MessageRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    timestamp: datetime
    is_from_current_user: bool
    sender: User | None = None
    is_read: bool = False
    media_url: str | None = None

    @classmethod
    def build(cls, message: Message, current_user_id: str, sender: User | None) -> MessageRow:
        return cls(
            id=message.id,
            content=message.content,
            timestamp=message.timestamp,
            is_from_current_user=message.is_sent_by(current_user_id),
            sender=sender,
            is_read=message.is_read_by(current_user_id),
            media_url=message.media_url,
        )


def participant_display_name(participants: list[User], current_user_id: str) -> str:
    others = [p for p in participants if p.id != current_user_id]
    if not others:
        return "Conversation"
    if len(others) == 1:
        return others[0].full_name
    return f"{others[0].first_name} + {len(others) - 1} others"
