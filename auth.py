from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from errors import Forbidden, Unauthorized
from identity import IdentityClient, IdentityError
from logging_setup import get_logger

log = get_logger("auth")

DEFAULT_ROLE = "user"

USER_OR_ADMIN = frozenset({"user", "admin"})
ADMIN_ONLY = frozenset({"admin"})
ANY_ROLE: FrozenSet[str] = frozenset()

ROUTE_ROLES: Dict[str, FrozenSet[str]] = {
    "plots.create": ADMIN_ONLY,
    "plots.list": USER_OR_ADMIN,
    "plots.get": USER_OR_ADMIN,
    "plots.update": ADMIN_ONLY,
    "plots.delete": ADMIN_ONLY,
    "plots.summary": USER_OR_ADMIN,
    "harvests.create": ADMIN_ONLY,
    "harvests.list": USER_OR_ADMIN,
    "harvests.by_plot": USER_OR_ADMIN,
    "auth.me": ANY_ROLE,
    "auth.logout": ANY_ROLE,
    "auth.update_password": ANY_ROLE,
    "auth.test_user": USER_OR_ADMIN,
    "auth.admin_create_user": ADMIN_ONLY,
    "auth.admin_set_role": ADMIN_ONLY,
}


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
    app_metadata: Dict[str, Any] = field(default_factory=dict)
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AuthenticatedUser":
        return cls(
            id=str(record["id"]),
            email=record.get("email"),
            role=record.get("role"),
            app_metadata=record.get("app_metadata") or {},
            user_metadata=record.get("user_metadata") or {},
            raw=record,
        )


@dataclass(frozen=True)
class RequestContext:
    user: AuthenticatedUser
    access_token: str


def _role_at(source: Any) -> Optional[str]:
    if isinstance(source, str) and source:
        return source
    return None


def resolve_role(user: AuthenticatedUser) -> str:
    """Effective role: app_metadata, then top-level role, then user_metadata.

    Never raises; a user without any role information is a plain ``user``.
    """
    app_md = user.app_metadata if isinstance(user.app_metadata, dict) else {}
    user_md = user.user_metadata if isinstance(user.user_metadata, dict) else {}
    for candidate in (app_md.get("role"), user.role, user_md.get("role")):
        role = _role_at(candidate)
        if role:
            return role
    return DEFAULT_ROLE


def is_allowed(role: str, allowed_roles: Iterable[str]) -> bool:
    allowed = frozenset(allowed_roles)
    if not allowed:
        return True
    return role in allowed


def authorize(user: AuthenticatedUser, required_roles: Iterable[str]) -> bool:
    required = frozenset(required_roles)
    if not required:
        return True
    role = resolve_role(user)
    if not is_allowed(role, required):
        log.warning("role %r denied (needs one of %s) for user %s", role, sorted(required), user.id)
        raise Forbidden("Insufficient role")
    return True


def validate_token(identity: IdentityClient, token: Optional[str]) -> AuthenticatedUser:
    if not token:
        raise Unauthorized("Missing Bearer token")
    try:
        record = identity.get_user(token)
    except IdentityError as e:
        log.warning("token rejected by identity provider: %s", e.message)
        raise Unauthorized("Invalid or expired token") from e
    if not record or not record.get("id"):
        log.warning("identity provider returned no user for token")
        raise Unauthorized("Invalid or expired token")
    return AuthenticatedUser.from_record(record)


# ---------- FastAPI wiring ----------
bearer = HTTPBearer(scheme_name="AccessToken", auto_error=False)

identity_client = IdentityClient(
    settings.supabase_url,
    settings.supabase_anon_key,
    service_role_key=settings.supabase_service_role_key,
    timeout=settings.auth_api_timeout,
    redirect_url=settings.oauth_redirect_url,
)


def get_identity() -> IdentityClient:
    return identity_client


def check_access(
    credentials: Optional[HTTPAuthorizationCredentials],
    identity: IdentityClient,
    required_roles: Iterable[str],
) -> RequestContext:
    """Bearer shape -> provider validation -> role check; stops at the first failure."""
    if not credentials or credentials.scheme != "Bearer":
        raise Unauthorized("Missing Bearer token")
    token = credentials.credentials.strip()
    user = validate_token(identity, token)
    authorize(user, required_roles)
    return RequestContext(user=user, access_token=token)


def access(route: str):
    """Dependency guarding ``route`` with the roles registered for it."""
    required = ROUTE_ROLES[route]

    def dependency(
        credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer),
        identity: IdentityClient = Depends(get_identity),
    ) -> RequestContext:
        return check_access(credentials, identity, required)

    return dependency
