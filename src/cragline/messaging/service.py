"""Direct messaging: conversations, messages and per-participant read state."""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import ValidationError as SchemaError

from cragline.errors import CraglineError, NotFoundError, ValidationError
from cragline.messaging.schemas import (
    CONVERSATIONS,
    Conversation,
    Message,
    conversation_id,
    messages_path,
)
from cragline.store import Document, DocumentStore, Increment, Query, Subscription
from cragline.users.schemas import USERS, User
from cragline.users.service import UserRepository

logger = logging.getLogger(__name__)


def _parse(model: type, rows: list[Document]) -> list:
    parsed = []
    for row in rows:
        try:
            parsed.append(model.from_document(row))
        except SchemaError:
            logger.warning("Skipping malformed %s document %s", model.__name__, row.get("id"))
    return parsed


class MessageService:
    def __init__(self, store: DocumentStore, users: UserRepository) -> None:
        self.store = store
        self.users = users

    # --- conversations ---

    def listen_for_conversations(
        self,
        user_id: str,
        on_update: Callable[[list[Conversation]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        """Realtime list of the user's conversations, most recent first."""
        query = (
            Query(CONVERSATIONS)
            .where("participants", "array_contains", user_id)
            .order("lastMessageTimestamp", descending=True)
        )
        return self.store.subscribe(query, lambda rows: on_update(_parse(Conversation, rows)), on_error)

    async def create_conversation(self, participants: list[str]) -> Conversation:
        """Return the conversation between ``participants``, creating it if needed."""
        members = sorted(set(participants))
        if len(members) < 2:
            raise ValidationError("A conversation needs at least two participants")
        existing = await self.get_conversation(conversation_id(members))
        if existing is not None:
            return existing
        conversation = Conversation(id=conversation_id(members), participants=members)
        await self.store.set(CONVERSATIONS, conversation.id, conversation.to_document())
        logger.info("Created conversation %s", conversation.id)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        data = await self.store.get(CONVERSATIONS, conversation_id)
        return Conversation.from_document(data) if data else None

    async def get_participants(
        self, current_user_id: str, conversations: list[Conversation]
    ) -> dict[str, User]:
        """Users for every participant other than ``current_user_id``."""
        ids = [p for c in conversations for p in c.participants if p != current_user_id]
        return await self.users.get_users_map(ids)

    async def search_users(self, query: str, exclude_user_id: str) -> list[User]:
        """People to start a conversation with, matched on first, last or full name."""
        needle = query.lower()
        return [
            user
            for user in _parse(User, await self.store.query(Query(USERS)))
            if user.id != exclude_user_id and needle in user.full_name.lower()
        ]

    # --- messages ---

    def listen_for_messages(
        self,
        conversation_id: str,
        on_update: Callable[[list[Message]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Subscription:
        """Realtime messages of one conversation, oldest first."""
        query = Query(messages_path(conversation_id)).order("timestamp")
        return self.store.subscribe(query, lambda rows: on_update(_parse(Message, rows)), on_error)

    async def send_message(
        self,
        content: str,
        conversation_id: str,
        sender_id: str,
        recipients: list[str],
        media_url: str | None = None,
    ) -> Message:
        """Store a message and update the conversation's last-message snapshot.

        The sender's read flag starts true and every recipient's false; each
        recipient's unread counter goes up by one.
        """
        content = content.strip()
        if not content:
            raise ValidationError("Message is empty")
        if await self.store.get(CONVERSATIONS, conversation_id) is None:
            raise NotFoundError("Conversation not found")
        recipients = [r for r in dict.fromkeys(recipients) if r != sender_id]
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            read_status={sender_id: True, **{r: False for r in recipients}},
            media_url=media_url,
        )
        await self.store.set(messages_path(conversation_id), message.id, message.to_document())
        try:
            await self.store.update(
                CONVERSATIONS,
                conversation_id,
                {
                    "lastMessage": content,
                    "lastMessageTimestamp": message.timestamp,
                    "lastMessageSenderId": sender_id,
                    **{f"unreadCounts.{r}": Increment(1) for r in recipients},
                },
            )
        except CraglineError:
            logger.warning("Conversation %s update failed, removing message %s", conversation_id, message.id)
            await self.store.delete(messages_path(conversation_id), message.id)
            raise
        return message

    async def mark_conversation_as_read(self, conversation_id: str, user_id: str) -> None:
        """Set every message's flag for ``user_id`` and zero their unread counter."""
        if await self.store.get(CONVERSATIONS, conversation_id) is None:
            raise NotFoundError("Conversation not found")
        rows = await self.store.query(Query(messages_path(conversation_id)))
        unread = [row for row in rows if not (row.get("readStatus") or {}).get(user_id)]
        writes = [(messages_path(conversation_id), row["id"], {f"readStatus.{user_id}": True}) for row in unread]
        writes.append((CONVERSATIONS, conversation_id, {f"unreadCounts.{user_id}": 0}))
        await self.store.batch_update(writes)
        logger.debug("Marked %d messages read in %s for %s", len(unread), conversation_id, user_id)
