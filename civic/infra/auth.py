"""Authentication helpers for FastAPI endpoints.

Identity issuance lives elsewhere; this module only turns a request into an
``AuthenticatedUser`` (or ``None`` for anonymous callers).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from civic.domain.reports.models import Role
from civic.infra import jwt as jwt_helper
from civic.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	role: Role = Role.CITIZEN
	email: Optional[str] = None
	display_name: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def _parse_role(value: object) -> Role:
	if value in (None, ""):
		return Role.CITIZEN
	try:
		return Role(str(value).strip().lower())
	except ValueError:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")

	display_name = payload.get("name") or payload.get("display_name")
	email = payload.get("email")
	return AuthenticatedUser(
		id=str(payload["sub"]).strip(),
		role=_parse_role(payload.get("role")),
		email=str(email) if email is not None else None,
		display_name=str(display_name) if display_name is not None else None,
	)


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Resolve the caller, or ``None`` when no credentials were presented.

	In development we also accept X-User-* headers; elsewhere a Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id, role=_parse_role(x_user_role))
	return None


async def get_current_user(
	user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> AuthenticatedUser:
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return user
