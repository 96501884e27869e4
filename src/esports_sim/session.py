from __future__ import annotations

import logging

from .errors import ShellError
from .gateway import AuthSubscription, BackendGateway
from .models import Session, SignUpResult, User

logger = logging.getLogger(__name__)

LOADING = "loading"
ANONYMOUS = "anonymous"
AUTHENTICATED = "authenticated"


class AuthSession:
    """Cached view of the signed-in user, kept current by gateway notifications.

    ``status`` moves from ``loading`` to ``anonymous`` or ``authenticated``
    once ``start()`` resolves the initial user. After that only auth events
    change it; sign-in and sign-out never set it directly.
    """

    def __init__(self, gateway: BackendGateway) -> None:
        self._gateway = gateway
        self.status = LOADING
        self.user: User | None = None
        self._subscription: AuthSubscription | None = None
        self._closed = False

    @property
    def is_authenticated(self) -> bool:
        return self.status == AUTHENTICATED and self.user is not None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    async def start(self) -> None:
        if self._closed:
            raise RuntimeError("Auth session is closed")
        if self._subscription is not None:
            return
        try:
            user = await self._gateway.get_current_user()
        except ShellError:
            logger.warning("Could not resolve the current user", exc_info=True)
            user = None
        if self._closed:
            return
        self._apply(user)
        self._subscription = self._gateway.on_auth_state_change(self._on_auth_change)

    def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def __aenter__(self) -> AuthSession:
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        self.close()

    def _apply(self, user: User | None) -> None:
        self.user = user
        self.status = AUTHENTICATED if user is not None else ANONYMOUS

    def _on_auth_change(self, event: str, session: Session | None) -> None:
        logger.info("Auth state changed: %s", event)
        self._apply(session.user if session is not None else None)

    async def sign_in(self, email: str, password: str) -> Session:
        return await self._gateway.sign_in(email, password)

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        return await self._gateway.sign_up(email, password)

    async def sign_out(self) -> bool:
        try:
            await self._gateway.sign_out()
        except ShellError:
            logger.warning("Sign out failed", exc_info=True)
            return False
        return True

    def view(self) -> dict[str, str | None]:
        return {"status": self.status, "email": self.user.email if self.user is not None else None}
