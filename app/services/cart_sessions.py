import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from app.models.identity import Identity
from app.repositories.cart_repo import CartStore
from app.services.cart_service import CartService, NoticeSink
from app.services.identity import IdentityProvider

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT_SECONDS = 1800


@dataclass
class _Session:
    provider: IdentityProvider
    engine: CartService
    last_used: float


class CartSessionRegistry:
    """
    Owns one CartService per signed-in user.

    - An engine is constructed (and reconciled) the first time a user
      shows up with a valid token, and torn down on sign-out or after
      `idle_timeout` seconds without a request.
    - Signed-out callers share a guest engine that has no identity and
      therefore never talks to the remote store.
    - Opening one user's session never blocks another user's requests;
      concurrent first requests of the same user share one engine.
    """

    def __init__(
        self,
        store: CartStore,
        notify: NoticeSink | None = None,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.idle_timeout = idle_timeout
        self._notify = notify
        self._clock = clock
        self._sessions: dict[uuid.UUID, _Session] = {}
        self._opening: dict[uuid.UUID, asyncio.Task] = {}
        self._guest = CartService(store, IdentityProvider(), notify)

    @property
    def guest(self) -> CartService:
        return self._guest

    def __contains__(self, user_id: uuid.UUID) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def session_for(self, identity: Identity | None) -> CartService:
        """
        Return the engine for `identity`, creating it on first use.
        """
        if identity is None:
            return self._guest

        await self.evict_idle()

        session = self._sessions.get(identity.user_id)
        if session is None:
            task = self._opening.get(identity.user_id)
            if task is None:
                task = asyncio.create_task(self._open(identity))
                self._opening[identity.user_id] = task
            # a cancelled request must not cancel the open for other waiters
            session = await asyncio.shield(task)

        session.last_used = self._clock()
        # keep the newest token around for the session
        await session.provider.sign_in(identity)
        return session.engine

    async def _open(self, identity: Identity) -> _Session:
        try:
            provider = IdentityProvider()
            engine = CartService(self.store, provider, self._notify)
            await engine.start()
            await provider.sign_in(identity)
            session = _Session(provider, engine, last_used=self._clock())
            self._sessions[identity.user_id] = session
            logger.info("Opened cart session for %s", identity.user_id)
            return session
        finally:
            self._opening.pop(identity.user_id, None)

    async def evict_idle(self) -> int:
        """
        Tear down every session unused for `idle_timeout` seconds.

        Returns:
            Number of sessions closed.
        """
        now = self._clock()
        idle = [
            user_id
            for user_id, session in self._sessions.items()
            if now - session.last_used >= self.idle_timeout
        ]
        for user_id in idle:
            logger.info("Cart session for %s idle, closing", user_id)
            await self.end(user_id)
        return len(idle)

    async def end(self, user_id: uuid.UUID) -> bool:
        """
        Sign the user's session out and drop its engine.

        Returns:
            False if there was no session for this user.
        """
        task = self._opening.get(user_id)
        if task is not None:
            await asyncio.shield(task)

        session = self._sessions.pop(user_id, None)
        if session is None:
            return False

        await session.provider.sign_out()
        session.engine.close()
        logger.info("Closed cart session for %s", user_id)
        return True

    async def close_all(self) -> None:
        for user_id in list(self._sessions):
            await self.end(user_id)
        self._guest.close()
