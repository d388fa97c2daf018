from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from officetrack.core.config import Settings
from officetrack.core.permissions import Role

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


@dataclass(frozen=True)
class Identity:
    user_id: UUID
    role: str


class TokenGate:
    """Issue and resolve signed ``{sub, role}`` claims.

    ``resolve`` collapses every failure (missing, malformed, bad signature,
    expired or missing ``exp``, unknown role) into ``None`` so callers only see
    "unauthenticated".
    """

    def __init__(self, settings: Settings):
        self._secret = settings.JWT_SECRET
        self._algorithm = settings.JWT_ALGORITHM
        self._ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def issue(
        self, user_id: UUID, role: str, now: Optional[datetime] = None
    ) -> str:
        issued_at = now or datetime.now(timezone.utc)
        claims: dict[str, Any] = {
            "sub": str(user_id),
            "role": role,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def resolve(self, token: Optional[str]) -> Optional[Identity]:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require_exp": True},
            )
        except (JWTError, ValueError):
            return None

        sub = payload.get("sub")
        role = payload.get("role")
        if not isinstance(sub, str) or role not in {r.value for r in Role}:
            return None
        try:
            user_id = UUID(sub)
        except ValueError:
            return None
        return Identity(user_id=user_id, role=role)
