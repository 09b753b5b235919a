# shared/common/authentication.py
"""
JWT Bearer Authentication

Access tokens are issued by the user service. This service only verifies
them and builds a ``TokenUser`` from the claims; no user row is loaded.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

import jwt
from django.conf import settings
from rest_framework import authentication, exceptions

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ['exp', 'iat', 'sub', 'iss']
STAFF_ROLES = frozenset({'admin', 'scheduler'})


class TokenUser:
    """Authenticated principal backed by verified token claims."""

    is_active = True
    is_authenticated = True
    is_anonymous = False

    def __init__(self, claims: Dict):
        self.claims = claims
        self.id = claims.get('sub')
        self.email = claims.get('email')
        self.roles = list(claims.get('roles') or [])

    def __str__(self):
        return self.email or str(self.id)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return not set(roles).isdisjoint(self.roles)

    @property
    def is_staff_member(self) -> bool:
        return self.has_any_role(STAFF_ROLES)


class JWTAuthentication(authentication.BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request) -> Optional[Tuple[TokenUser, Dict]]:
        header = authentication.get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword.lower().encode():
            return None
        if len(header) != 2:
            raise exceptions.AuthenticationFailed('Authorization header must be "Bearer <token>"')

        try:
            token = header[1].decode('ascii')
        except UnicodeDecodeError:
            raise exceptions.AuthenticationFailed('Token contains invalid characters')

        claims = self.verify(token)
        return TokenUser(claims), claims

    def verify(self, token: str) -> Dict:
        jwt_settings = settings.JWT_SETTINGS
        try:
            return jwt.decode(
                token,
                jwt_settings['VERIFYING_KEY'],
                algorithms=[jwt_settings['ALGORITHM']],
                issuer=jwt_settings['ISSUER'],
                options={'require': REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed('Token has expired')
        except jwt.InvalidTokenError as e:
            logger.warning(f"Rejected bearer token: {e}")
            raise exceptions.AuthenticationFailed('Invalid token')

    def authenticate_header(self, request) -> str:
        return self.keyword
