import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional

import jwt

ROLE_ADMIN = "ADMIN"
ROLE_DOCTOR = "DOCTOR"
ROLE_PATIENT = "PATIENT"


@dataclass(frozen=True)
class CallerContext:
    """Identity and roles of whoever is calling a service operation.

    Services receive this explicitly instead of reading a request-global
    user, so every authorization decision is visible in the call signature.
    """

    principal_id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, principal_id: str, roles: Iterable[str] = ()) -> "CallerContext":
        return cls(
            principal_id=str(principal_id),
            roles=frozenset(_normalize_role(r) for r in roles),
        )

    def has_role(self, role: str) -> bool:
        return _normalize_role(role) in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(ROLE_ADMIN)

    @property
    def is_patient(self) -> bool:
        return self.has_role(ROLE_PATIENT)


def _normalize_role(role: str) -> str:
    # Identity providers often prefix roles ("ROLE_DOCTOR")
    name = str(role).strip().upper()
    return name[5:] if name.startswith("ROLE_") else name


# JWT configuration
def get_jwt_secret_key():
    """Get JWT secret key with production validation.

    In production (FLASK_ENV=production), this function validates that:
    - JWT_SECRET_KEY is set and not using weak defaults
    - Secret is at least 32 characters long

    Raises:
        ValueError: If production deployment uses weak or missing JWT secret

    Returns:
        JWT secret key from environment or development default
    """
    secret = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret-change-me")
    is_production = os.getenv("FLASK_ENV") == "production"

    if is_production:
        weak_secrets = ["dev-jwt-secret-change-me", "dev-secret-change-me", "secret123"]
        if secret in weak_secrets or len(secret) < 32:
            raise ValueError(
                "Production deployment requires strong JWT_SECRET_KEY (min 32 chars). "
                "Set JWT_SECRET_KEY environment variable."
            )

    return secret


JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24


def create_access_token(
    data: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """Create a JWT access token.

    Args:
        data: Payload data to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS)

    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, get_jwt_secret_key(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate a JWT access token.

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(token, get_jwt_secret_key(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


def create_caller_token(principal_id: str, roles: Iterable[str]) -> str:
    """Create a JWT token for an identity-provider subject and its roles."""
    token_data = {"sub": str(principal_id), "roles": list(roles), "type": "access"}
    return create_access_token(token_data)


def caller_from_token(token: str) -> Optional[CallerContext]:
    """Build a CallerContext from the `sub` and `roles` claims of a token.

    Returns None when the token is invalid, expired or has no subject.
    """
    payload = decode_access_token(token)
    if payload is None:
        return None

    subject = payload.get("sub")
    if not subject:
        return None

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]

    return CallerContext.of(subject, roles)
