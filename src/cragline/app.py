"""Client application factory: settings, logging, store and services in one place."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from cragline.activity.comments import CommentRepository
from cragline.activity.repository import ActivityRepository
from cragline.config import Settings, get_settings
from cragline.gyms.service import GymService, PermissionsService
from cragline.logging_config import bind_session, setup_logging
from cragline.messaging.service import MessageService
from cragline.passes.wallet import PassWallet
from cragline.session import ANONYMOUS, Session
from cragline.store import DocumentStore, create_store
from cragline.users.service import RelationshipService, UserRepository

logger = structlog.get_logger()


@dataclass
class App:
    """Services shared by every screen of one running client."""

    settings: Settings
    store: DocumentStore
    users: UserRepository
    relationships: RelationshipService
    gyms: GymService
    permissions: PermissionsService
    activities: ActivityRepository
    comments: CommentRepository
    messages: MessageService
    wallet: PassWallet
    session: Session = field(default=ANONYMOUS)

    def sign_in(self, user_id: str) -> Session:
        self.session = Session(user_id=user_id)
        bind_session(self.session)
        logger.info("signed_in")
        return self.session

    def sign_out(self) -> None:
        logger.info("signed_out")
        self.session = ANONYMOUS
        bind_session(self.session)
        # Caches hold the previous user's view of the graph
        self.users.clear_cache()
        self.relationships.clear_cache()


def create_app(settings: Settings | None = None, store: DocumentStore | None = None) -> App:
    """Build the client. ``store`` overrides the backend chosen in settings."""
    settings = settings or get_settings()
    setup_logging(settings)

    store = store if store is not None else create_store(settings)
    users = UserRepository(store)
    relationships = RelationshipService(store, users)
    gyms = GymService(store)
    app = App(
        settings=settings,
        store=store,
        users=users,
        relationships=relationships,
        gyms=gyms,
        permissions=PermissionsService(store),
        activities=ActivityRepository(store, users, gyms, relationships),
        comments=CommentRepository(store, users),
        messages=MessageService(store, users),
        wallet=PassWallet.from_settings(settings),
    )
    logger.info(
        "app_started",
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
    )
    return app
