"""Conversation list and single-conversation screens.

Both screens are driven by realtime listeners: every snapshot replaces the
local collection wholesale. Call ``close()`` on teardown to stop listening.
"""

from __future__ import annotations

import structlog
from pydantic import Field

from cragline.errors import CraglineError, NotFoundError
from cragline.messaging.schemas import (
    Conversation,
    ConversationRow,
    Message,
    MessageRow,
    participant_display_name,
)
from cragline.messaging.service import MessageService
from cragline.session import Session
from cragline.store import Subscription
from cragline.users.schemas import User
from cragline.viewmodel import ViewModel, ViewState

logger = structlog.get_logger()


class ConversationListState(ViewState):
    conversations: list[ConversationRow] = Field(default_factory=list)

    @property
    def total_unread(self) -> int:
        return sum(row.unread_count for row in self.conversations)


class ConversationListViewModel(ViewModel[ConversationListState]):
    def __init__(self, service: MessageService, session: Session) -> None:
        super().__init__(ConversationListState())
        self.service = service
        self.session = session
        self._listener: Subscription | None = None

    def load_conversations(self) -> None:
        """Start (or restart) the realtime conversation listener."""
        try:
            user_id = self.session.require_user()
        except CraglineError as exc:
            self._fail(exc)
            return
        if self._listener is not None:
            self._listener.unsubscribe()
        self._set(is_loading=True, error_message=None, has_error=False)
        self._listener = self._hold(
            self.service.listen_for_conversations(user_id, self._on_snapshot, self._on_error)
        )

    async def create_conversation(self, other_user_id: str) -> str | None:
        self._set(is_loading=True, error_message=None, has_error=False)
        try:
            conversation = await self.service.create_conversation(
                [self.session.require_user(), other_user_id]
            )
        except CraglineError as exc:
            self._fail(exc, prefix="Error creating conversation")
            return None
        self._set(is_loading=False)
        return conversation.id

    def _on_snapshot(self, conversations: list[Conversation]) -> None:
        self._spawn(self._process(conversations))

    def _on_error(self, exc: Exception) -> None:
        self._fail(exc, prefix="Error loading conversations")

    async def _process(self, conversations: list[Conversation]) -> None:
        user_id = self.session.require_user()
        try:
            users = await self.service.get_participants(user_id, conversations)
        except CraglineError as exc:
            self._fail(exc, prefix="Error loading conversation participants")
            return
        rows = [ConversationRow.build(c, user_id, users) for c in conversations]
        rows.sort(key=lambda r: r.last_message_timestamp, reverse=True)
        self._set(conversations=rows, is_loading=False)


class ConversationState(ViewState):
    conversation: Conversation | None = None
    participants: list[User] = Field(default_factory=list)
    messages: list[MessageRow] = Field(default_factory=list)
    new_message_text: str = ""


class ConversationViewModel(ViewModel[ConversationState]):
    def __init__(self, service: MessageService, session: Session, conversation_id: str) -> None:
        super().__init__(ConversationState())
        self.service = service
        self.session = session
        self.conversation_id = conversation_id
        self._listener: Subscription | None = None

    @property
    def main_participant(self) -> User | None:
        return next((p for p in self.state.participants if p.id != self.session.user_id), None)

    @property
    def participant_display_name(self) -> str:
        return participant_display_name(self.state.participants, self.session.user_id or "")

    def set_text(self, text: str) -> None:
        self._set(new_message_text=text)

    async def load_conversation(self) -> None:
        self._set(is_loading=True, error_message=None, has_error=False)
        try:
            user_id = self.session.require_user()
            conversation = await self.service.get_conversation(self.conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation not found")
            users = await self.service.get_participants(user_id, [conversation])
            me = await self.service.users.get_user(user_id)
            await self.service.mark_conversation_as_read(self.conversation_id, user_id)
        except NotFoundError as exc:
            self._fail(exc)
            return
        except CraglineError as exc:
            self._fail(exc, prefix="Error loading conversation")
            return
        users[user_id] = me
        participants = [users[p] for p in conversation.participants if p in users]
        self._set(conversation=conversation, participants=participants)
        if self._listener is not None:
            self._listener.unsubscribe()
        self._listener = self._hold(
            self.service.listen_for_messages(self.conversation_id, self._on_messages, self._on_error)
        )

    async def send_message(self) -> None:
        text = self.state.new_message_text.strip()
        conversation = self.state.conversation
        if not text or conversation is None:
            return
        try:
            user_id = self.session.require_user()
            recipients = [p for p in conversation.participants if p != user_id]
            await self.service.send_message(text, self.conversation_id, user_id, recipients)
        except CraglineError as exc:
            self._fail(exc, prefix="Error sending message")
            return
        logger.debug("message_sent", conversation_id=self.conversation_id)
        self._set(new_message_text="")

    async def mark_as_read(self) -> None:
        try:
            await self.service.mark_conversation_as_read(self.conversation_id, self.session.require_user())
        except CraglineError as exc:
            self._fail(exc)

    def _on_messages(self, messages: list[Message]) -> None:
        user_id = self.session.user_id or ""
        senders = {p.id: p for p in self.state.participants}
        rows = [MessageRow.build(m, user_id, senders.get(m.sender_id)) for m in messages]
        self._set(messages=rows, is_loading=False)

    def _on_error(self, exc: Exception) -> None:
        self._fail(exc, prefix="Error loading messages")
