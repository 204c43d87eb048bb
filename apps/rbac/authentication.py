"""
Bearer credential handling: token configuration, issuance and the
Principal Resolver.

The resolver is read-only: it verifies a signed JWT and turns its
subject into an OwnerPrincipal or CompanyUserPrincipal. Login (password
checks, last-login bookkeeping) lives outside this module.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import jwt
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.core.exceptions import (
    ExpiredCredential,
    InvalidCredential,
    OwnerRequired,
    PrincipalNotFound,
)
from apps.rbac.models import CompanyUser, Owner
from apps.rbac.principals import CompanyUserPrincipal, OwnerPrincipal, PrincipalKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenConfig:
    """Signing configuration handed explicitly to the resolver."""

    secret_key: str
    algorithm: str = 'HS256'
    expiration_hours: int = 24
    issuer: Optional[str] = None

    @classmethod
    def from_settings(cls):
        return cls(
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=getattr(settings, 'JWT_ALGORITHM', 'HS256'),
            expiration_hours=getattr(settings, 'JWT_EXPIRATION_HOURS', 24),
            issuer=getattr(settings, 'JWT_ISSUER', None) or None,
        )


def issue_token(principal, config: TokenConfig) -> str:
    """
    Build a signed credential for a principal.

    Claims: sub, kind, company_id (company users only), iat, exp and,
    when configured, iss.
    """
    now = timezone.now()
    payload = {
        'sub': str(principal.id),
        'kind': principal.kind.value,
        'iat': now,
        'exp': now + timedelta(hours=config.expiration_hours),
    }
    if principal.company_id is not None:
        payload['company_id'] = str(principal.company_id)
    if config.issuer:
        payload['iss'] = config.issuer

    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


class PrincipalResolver:
    """
    Validates bearer credentials and produces principals.

    Example:
        >>> resolver = PrincipalResolver(TokenConfig.from_settings())
        >>> principal = resolver.resolve(token)
    """

    def __init__(self, config: TokenConfig):
        self.config = config

    def decode(self, credential: str) -> dict:
        """
        Verify signature and expiry.

        Raises:
            ExpiredCredential: Token expired
            InvalidCredential: Token malformed, tampered or missing claims
        """
        if not credential:
            raise InvalidCredential()

        options = {'require': ['sub', 'kind', 'iat', 'exp']}
        try:
            payload = jwt.decode(
                credential,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
                issuer=self.config.issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredCredential()
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected bearer credential: {e.__class__.__name__}")
            raise InvalidCredential()

        try:
            payload['kind'] = PrincipalKind(payload['kind'])
        except ValueError:
            raise InvalidCredential()

        return payload

    def resolve(self, credential: str):
        """
        Turn a bearer credential into a principal.

        Owner subjects only need to exist. Company-user subjects must be
        active and belong to an active company.

        Raises:
            InvalidCredential, ExpiredCredential, PrincipalNotFound
        """
        payload = self.decode(credential)
        subject_id = payload['sub']

        if payload['kind'] is PrincipalKind.OWNER:
            try:
                owner = Owner.objects.get(id=subject_id)
            except (Owner.DoesNotExist, ValidationError):
                raise PrincipalNotFound()
            return OwnerPrincipal(id=owner.id, is_active=owner.is_active)

        try:
            user = CompanyUser.objects.select_related('company').get(
                id=subject_id,
                is_active=True,
                company__is_active=True,
            )
        except (CompanyUser.DoesNotExist, ValidationError):
            raise PrincipalNotFound()

        return CompanyUserPrincipal(
            id=user.id,
            company_id=user.company_id,
            is_active=user.is_active,
        )

    def resolve_owner(self, credential: str) -> OwnerPrincipal:
        """
        Like resolve(), for owner-only entry points.

        Raises:
            OwnerRequired: The credential belongs to a company user
        """
        payload = self.decode(credential)
        if payload['kind'] is not PrincipalKind.OWNER:
            raise OwnerRequired()
        return self.resolve(credential)
