import inspect
import logging
from typing import Awaitable, Callable, Union

from app.models.identity import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Identity | None], Union[None, Awaitable[None]]]


class IdentityProvider:
    """
    Holds the identity of one client session and notifies subscribers
    whenever it changes.

    Listeners may be plain functions or coroutines; they are called in
    subscription order and coroutines are awaited before the next one
    runs.
    """

    def __init__(self, identity: Identity | None = None):
        self._identity = identity
        self._listeners: list[IdentityListener] = []

    @property
    def current(self) -> Identity | None:
        return self._identity

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Register a listener for identity changes.

        Returns:
            A callable that removes the listener again (idempotent).
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in(self, identity: Identity) -> None:
        if self._identity is not None and self._identity.user_id == identity.user_id:
            # same user, fresher token: no change to announce
            self._identity = identity
            return
        await self._change(identity)

    async def sign_out(self) -> None:
        if self._identity is None:
            return
        await self._change(None)

    async def _change(self, identity: Identity | None) -> None:
        self._identity = identity
        logger.info(
            "Identity changed: %s",
            identity.user_id if identity is not None else "signed out",
        )
        for listener in list(self._listeners):
            result = listener(identity)
            if inspect.isawaitable(result):
                await result
