"""Comments on activity items."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable

from pydantic import Field

from cragline.activity.schemas import ACTIVITY_ITEMS, Comment, comments_path
from cragline.errors import CraglineError, NotFoundError
from cragline.session import Session
from cragline.store import DocumentStore, Increment, Query
from cragline.users.service import UserRepository
from cragline.viewmodel import ViewModel, ViewState

logger = logging.getLogger(__name__)


class CommentRepository:
    def __init__(self, store: DocumentStore, users: UserRepository) -> None:
        self.store = store
        self.users = users

    async def fetch_comments(self, item_id: str) -> list[Comment]:
        """Comments oldest first. Comments whose author is gone are dropped."""
        rows = await self.store.query(Query(comments_path(item_id)).order("timeStamp"))
        authors = await self.users.get_users_map([row["authorId"] for row in rows])
        comments = []
        for row in rows:
            author = authors.get(row["authorId"])
            if author is None:
                continue
            comments.append(Comment.from_document({**row, "author": author}))
        return comments

    async def add_comment(self, item_id: str, comment: Comment) -> Comment:
        await self.store.set(comments_path(item_id), comment.id, comment.to_document())
        await self.store.update(ACTIVITY_ITEMS, item_id, {"commentCount": Increment(1)})
        return comment

    async def delete_comment(self, item_id: str, comment_id: str) -> None:
        if await self.store.get(comments_path(item_id), comment_id) is None:
            raise NotFoundError("Comment not found")
        await self.store.delete(comments_path(item_id), comment_id)
        await self.store.update(ACTIVITY_ITEMS, item_id, {"commentCount": Increment(-1)})


class CommentsState(ViewState):
    comments: list[Comment] = Field(default_factory=list)
    new_comment_text: str = ""


CountListener = Callable[[str, int], None]


class CommentsViewModel(ViewModel[CommentsState]):
    """Comment thread for one item.

    ``on_count_change`` receives ``(item_id, delta)`` after every successful
    add or delete so feed screens can adjust their cached counters.
    """

    def __init__(
        self,
        repository: CommentRepository,
        session: Session,
        item_id: str,
        on_count_change: CountListener | None = None,
    ) -> None:
        super().__init__(CommentsState())
        self.repository = repository
        self.session = session
        self.item_id = item_id
        self.on_count_change = on_count_change

    def set_text(self, text: str) -> None:
        self._set(new_comment_text=text)

    async def fetch_comments(self) -> None:
        self._set(is_loading=True)
        try:
            comments = await self.repository.fetch_comments(self.item_id)
        except CraglineError as exc:
            self._fail(exc, prefix="Error loading comments")
            return
        self._set(comments=comments, is_loading=False)

    async def add_comment(self) -> None:
        content = self.state.new_comment_text.strip()
        if not content:
            return
        try:
            author = await self.repository.users.get_user(self.session.require_user())
            comment = await self.repository.add_comment(
                self.item_id,
                Comment(id=str(uuid.uuid4()), author=author, content=content),
            )
        except CraglineError as exc:
            self._fail(exc, prefix="Error adding comment")
            return
        self._set(comments=[*self.state.comments, comment], new_comment_text="")
        self._notify_count(1)

    async def delete_comment(self, comment_id: str) -> None:
        try:
            await self.repository.delete_comment(self.item_id, comment_id)
        except CraglineError as exc:
            self._fail(exc, prefix="Error deleting comment")
            return
        self._set(comments=[c for c in self.state.comments if c.id != comment_id])
        self._notify_count(-1)

    def _notify_count(self, delta: int) -> None:
        logger.debug("Comment count on %s changed by %d", self.item_id, delta)
        if self.on_count_change is not None:
            self.on_count_change(self.item_id, delta)
