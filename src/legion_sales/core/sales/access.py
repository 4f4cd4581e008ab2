"""
Capability checks for sale actions.

Each privileged action declares the capability its caller must hold. The
controller compares the caller against its platform address snapshot and
project admin directly; there is no role inheritance.
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from typing import Any, Callable

from ..sale_exceptions import (
    NotCalledByAdmin,
    NotCalledByPlatformAdmin,
    NotCalledByProjectAdmin,
)

logger = logging.getLogger(__name__)


class Capability(Enum):
    PLATFORM_ADMIN = "platform_admin"
    PROJECT_ADMIN = "project_admin"
    EITHER_ADMIN = "either_admin"


def has_capability(capability: Capability, caller: str, platform_admin: str, project_admin: str) -> bool:
    caller = caller.lower()
    if capability == Capability.PLATFORM_ADMIN:
        return caller == platform_admin.lower()
    if capability == Capability.PROJECT_ADMIN:
        return caller == project_admin.lower()
    return caller in (platform_admin.lower(), project_admin.lower())


_ERRORS = {
    Capability.PLATFORM_ADMIN: NotCalledByPlatformAdmin,
    Capability.PROJECT_ADMIN: NotCalledByProjectAdmin,
    Capability.EITHER_ADMIN: NotCalledByAdmin,
}


def require_capability(capability: Capability, caller: str, platform_admin: str, project_admin: str) -> None:
    """
    Raises:
        AuthorizationError: subclass matching the missing capability
    """
    if has_capability(capability, caller, platform_admin, project_admin):
        return
    logger.warning(
        "Caller lacks %s capability",
        capability.value,
        extra={"event": "access.denied", "capability": capability.value, "caller": caller[:10]},
    )
    raise _ERRORS[capability](
        f"Caller does not hold the {capability.value} capability",
        details={"caller": caller, "capability": capability.value},
    )


def requires_capability(capability: Capability) -> Callable:
    """
    Decorator for controller actions whose first argument is the caller.

    Usage:
        @requires_capability(Capability.PLATFORM_ADMIN)
        def publish_raised_capital(self, caller, capital_raised):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self: Any, caller: str, *args: Any, **kwargs: Any) -> Any:
            require_capability(
                capability,
                caller,
                self.legion_addresses.platform_admin,
                self.config.project_admin,
            )
            return func(self, caller, *args, **kwargs)
        return wrapper
    return decorator
