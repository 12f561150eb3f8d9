import logging
from typing import Callable, List, Optional, Union

from ecosystem.modules.authz import engine
from ecosystem.modules.authz.models import PermissionAction, Principal

logger = logging.getLogger(__name__)

PrincipalListener = Callable[[Optional[Principal], Optional[Principal]], None]


class PrincipalSession:
    """
    Holds the current Principal snapshot for one session.

    The principal itself is immutable; a change of grants is an explicit
    ``replace`` with a freshly built principal, observed by subscribers as
    ``(old, new)``. ``clear`` is logout.
    """

    def __init__(self, principal: Optional[Principal] = None):
        self._principal = principal
        self._listeners: List[PrincipalListener] = []

    @property
    def current(self) -> Optional[Principal]:
        return self._principal

    @property
    def is_authenticated(self) -> bool:
        return self._principal is not None

    def subscribe(self, listener: PrincipalListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def replace(self, principal: Optional[Principal]) -> Optional[Principal]:
        """Swap in ``principal`` and notify listeners. Returns the previous snapshot."""
        previous = self._principal
        self._principal = principal
        for listener in list(self._listeners):
            try:
                listener(previous, principal)
            except Exception:
                logger.exception("Principal listener failed")
        return previous

    def clear(self) -> Optional[Principal]:
        return self.replace(None)

    def can(self, action: Union[PermissionAction, str], resource: str, scope=None) -> bool:
        return engine.can(self._principal, action, resource, scope)
