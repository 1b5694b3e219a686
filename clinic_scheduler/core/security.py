"""Caller identity carried in portal-issued JWT access tokens."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from clinic_scheduler.config import settings


class Role(str, Enum):
    """Portal roles."""

    STUDENT = "student"
    ACADEMIC_STAFF = "academic_staff"
    DOCTOR = "doctor"
    CLINICAL_STAFF = "clinical_staff"
    ADMIN = "admin"


PATIENT_ROLES = frozenset({Role.STUDENT, Role.ACADEMIC_STAFF})
STAFF_ROLES = frozenset({Role.CLINICAL_STAFF, Role.ADMIN})


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    user_id: UUID
    role: Role

    @property
    def is_patient(self) -> bool:
        return self.role in PATIENT_ROLES

    @property
    def is_doctor(self) -> bool:
        return self.role == Role.DOCTOR

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    The portal's auth service issues tokens in production; this is used by
    tests and local tooling.

    Args:
        data: Payload data to encode (``sub`` and ``role``)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=30))

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def identity_from_payload(payload: dict[str, Any]) -> Identity | None:
    """Build the caller identity from decoded claims, or None if they are malformed."""
    subject = payload.get("sub")
    role = payload.get("role")
    if not isinstance(subject, str) or not isinstance(role, str):
        return None
    try:
        return Identity(user_id=UUID(subject), role=Role(role))
    except ValueError:
        return None
