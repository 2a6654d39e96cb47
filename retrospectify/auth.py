"""Authentication via reverse proxy headers.

Supports Authelia, OAuth2 Proxy, and similar reverse proxy authentication
systems that pass user identity via trusted headers. With auth disabled,
every request acts as a single local user.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from ipaddress import ip_address, ip_network
from typing import List, Optional

from fastapi import HTTPException, Request, status

from .models import Participant

logger = logging.getLogger(__name__)

# Environment configuration
AUTH_ENABLED = os.getenv("RETRO_AUTH_ENABLED", "false").lower() == "true"

# Trusted proxy IPs - only accept auth headers from these sources
TRUSTED_PROXY_IPS = os.getenv(
    "RETRO_TRUSTED_PROXY_IPS",
    "127.0.0.1,::1,10.0.0.0/8,172.16.0.0/12,192.168.0.0/16"
)

# Identity used for every request while auth is disabled
LOCAL_USER_ID = os.getenv("RETRO_LOCAL_USER", "local")

# Group whose members may administer any team
ADMIN_GROUP = os.getenv("RETRO_ADMIN_GROUP", "admins")

# Header names (Authelia/OAuth2 Proxy standard)
REMOTE_USER_HEADER = "Remote-User"
REMOTE_GROUPS_HEADER = "Remote-Groups"
REMOTE_EMAIL_HEADER = "Remote-Email"
REMOTE_NAME_HEADER = "Remote-Name"


@dataclass
class User:
    """Authenticated user from reverse proxy headers."""

    username: str
    email: Optional[str] = None
    groups: List[str] = field(default_factory=list)
    display_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return ADMIN_GROUP in self.groups

    def to_participant(self) -> Participant:
        """This user as a retrospective participant."""
        return Participant(
            id=self.username,
            name=self.display_name or self.username,
            email=self.email,
        )


@lru_cache
def _parse_trusted_ips() -> tuple:
    """Parse trusted proxy IPs from the environment.

    Returns:
        Tuple of ip_address or ip_network objects
    """
    trusted = []
    for ip_str in TRUSTED_PROXY_IPS.split(","):
        ip_str = ip_str.strip()
        if not ip_str:
            continue
        try:
            if "/" in ip_str:
                trusted.append(ip_network(ip_str, strict=False))
            else:
                trusted.append(ip_address(ip_str))
        except ValueError:
            logger.warning("Invalid IP/CIDR in RETRO_TRUSTED_PROXY_IPS: %s", ip_str)
    return tuple(trusted)


def _is_trusted_ip(client_ip: str) -> bool:
    """Check if client IP is in the trusted proxy list."""
    try:
        client = ip_address(client_ip)
    except ValueError:
        logger.warning("Invalid client IP: %s", client_ip)
        return False

    for trusted in _parse_trusted_ips():
        if hasattr(trusted, "network_address"):
            if client in trusted:
                return True
        elif client == trusted:
            return True

    return False


def _get_client_ip(request: Request) -> str:
    """Extract client IP from request, respecting X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return ""


async def get_current_user(request: Request) -> Optional[User]:
    """Extract user from trusted proxy headers.

    Only returns a User if auth is enabled, the request comes from a
    trusted proxy IP, and the Remote-User header is present.
    """
    if not AUTH_ENABLED:
        return None

    client_ip = _get_client_ip(request)

    if not _is_trusted_ip(client_ip):
        logger.warning(
            "Auth headers received from untrusted IP: %s (trusted: %s)",
            client_ip,
            TRUSTED_PROXY_IPS,
        )
        return None

    username = request.headers.get(REMOTE_USER_HEADER)
    if not username:
        return None

    groups_str = request.headers.get(REMOTE_GROUPS_HEADER, "")
    groups = [g.strip() for g in groups_str.split(",") if g.strip()]

    return User(
        username=username,
        email=request.headers.get(REMOTE_EMAIL_HEADER),
        groups=groups,
        display_name=request.headers.get(REMOTE_NAME_HEADER),
    )


async def get_optional_user(request: Request) -> Optional[User]:
    """Dependency for optional authentication. Never raises."""
    return await get_current_user(request)


async def require_user(request: Request) -> User:
    """Dependency resolving the acting user.

    Returns the local user while auth is disabled.

    Raises:
        HTTPException: 401 if auth is enabled and the request is anonymous
    """
    if not AUTH_ENABLED:
        return User(username=LOCAL_USER_ID, display_name="Local User", groups=[ADMIN_GROUP])

    user = await get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
