"""
Identity cookies and the per-request authorization gate.

A successful login sets ``loginUser`` or ``loginDeliverer`` to a signed token
naming the account id and role. There is no server-side session table: the
token's signature and expiry plus the account still existing are the whole
proof of identity, so a session ends only when its cookie expires.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from fastapi import Response
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from database import AccountStore
from errors import AmbiguousIdentity, Unauthenticated
from schemas import Role

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    """Who is making the request. ``role`` is None for anonymous requests."""

    model_config = ConfigDict(frozen=True)

    role: Optional[Role] = None
    account_id: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.role is None


ANONYMOUS = Identity()


class SessionManager:
    def __init__(
        self,
        store: AccountStore,
        secret_key: str,
        algorithm: str = "HS256",
        minutes: int = 100,
        secure: bool = True,
        samesite: str = "lax",
    ):
        self.store = store
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = timedelta(minutes=minutes)
        self.secure = secure
        self.samesite = samesite

    def create_token(self, role: Role, account_id: str, now: Optional[datetime] = None) -> str:
        issued = now or datetime.now(timezone.utc)
        claims = {"sub": account_id, "role": role.value, "exp": issued + self.lifetime}
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def set_cookie(self, response: Response, role: Role, account_id: str) -> None:
        # only this role's cookie is touched; the other one stays as the client has it
        response.set_cookie(
            key=role.cookie_name,
            value=self.create_token(role, account_id),
            max_age=int(self.lifetime.total_seconds()),
            httponly=True,
            secure=self.secure,
            samesite=self.samesite,
        )

    def account_id_from(self, token: Any, role: Role) -> str:
        if not isinstance(token, str) or not token:
            raise Unauthenticated()
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            raise Unauthenticated() from exc
        if payload.get("role") != role.value or not isinstance(payload.get("sub"), str):
            raise Unauthenticated()
        return payload["sub"]

    def account_for(self, cookies: Mapping[str, str], role: Role) -> Dict[str, Any]:
        """Account named by this role's identity cookie.

        Missing, expired, tampered or stale cookies raise ``Unauthenticated``.
        """
        account_id = self.account_id_from(cookies.get(role.cookie_name), role)
        account = self.store.find_by_id(role, account_id)
        if account is None:
            logger.info("Identity cookie %s names no account", role.cookie_name)
            raise Unauthenticated()
        return account

    def resolve(self, cookies: Mapping[str, str]) -> Identity:
        """Resolve the request's identity from exactly one identity cookie.

        Cookies other than the two identity cookies are ignored. A request
        carrying both identity cookies is ambiguous and rejected rather than
        guessed at.
        """
        present = [role for role in Role if cookies.get(role.cookie_name)]
        if not present:
            return ANONYMOUS
        if len(present) > 1:
            raise AmbiguousIdentity()
        role = present[0]
        account = self.account_for(cookies, role)
        return Identity(role=role, account_id=str(account["_id"]), name=account.get("name"))
