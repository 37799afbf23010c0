from __future__ import annotations

import logging
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash

from ..access.model import Principal
from ..core.constants import DEFAULT_TOKEN_MAX_AGE
from ..core.exceptions import AuthenticationError
from .repository import TenantRepository, UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    """Use case: authenticate users and resolve the acting principal.

    Credential issuance proper is an external concern; this is the minimal
    boundary the HTTP layer needs (password login, signed bearer tokens).
    """

    TOKEN_SALT = "presence-tracker-auth"

    def __init__(
        self,
        users: UserRepository,
        tenants: TenantRepository,
        *,
        secret_key: str,
        token_max_age: int = DEFAULT_TOKEN_MAX_AGE,
    ):
        self._users = users
        self._tenants = tenants
        self._serializer = URLSafeTimedSerializer(secret_key, salt=self.TOKEN_SALT)
        self._token_max_age = int(token_max_age)

    def authenticate(self, email: str, password: str) -> Principal:
        user = self._users.get_by_email((email or "").strip())
        if not user or not user.is_active:
            raise AuthenticationError("Invalid credentials")

        try:
            ok = check_password_hash(user.password_hash, password or "")
        except ValueError:
            # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
            ok = False
        if not ok:
            raise AuthenticationError("Invalid credentials")

        if user.tenant_id is not None:
            tenant = self._tenants.get_by_id(user.tenant_id)
            if not tenant or not tenant.is_active:
                raise AuthenticationError("Company account is inactive")

        logger.info("User %s logged in", user.user_id)
        return user.to_principal()

    def issue_token(self, principal: Principal) -> str:
        return self._serializer.dumps({"uid": principal.user_id})

    def resolve_token(self, token: str) -> Principal:
        try:
            payload = self._serializer.loads(token, max_age=self._token_max_age)
        except SignatureExpired:
            raise AuthenticationError("Token expired")
        except BadSignature:
            raise AuthenticationError("Invalid token")
        return self.principal_for(int(payload["uid"]))

    def principal_for(self, user_id: int) -> Principal:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise AuthenticationError("Unauthenticated")
        return user.to_principal()

    def try_resolve_token(self, token: Optional[str]) -> Optional[Principal]:
        """Best-effort variant for device calls: invalid tokens resolve to None."""

        if not token:
            return None
        try:
            return self.resolve_token(token)
        except AuthenticationError:
            logger.info("Ignoring invalid device token")
            return None
