"""Admin capability shared by the mutating resource services."""
from collections.abc import Callable

import structlog

from gallery_admin.errors import AuthorizationError

logger = structlog.get_logger(__name__)


class AdminCapability:
    """
    Checks admin membership at call time.

    One instance is injected into each service at construction. The predicate
    is evaluated on every ``require()``; the result is never remembered, so a
    session that loses its admin group (or expires) is refused on the very
    next mutation.

    Args:
        predicate: zero-argument callable returning True for admin sessions,
            normally ``AuthGateway.is_admin``
    """

    def __init__(self, predicate: Callable[[], bool]):
        self._predicate = predicate

    def allowed(self) -> bool:
        return bool(self._predicate())

    def require(self, action: str = "mutation") -> None:
        if not self.allowed():
            logger.warning("admin_capability_denied", action=action)
            raise AuthorizationError()
