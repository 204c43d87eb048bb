"""
Company services: owner-only freeze/unfreeze.
"""
import logging
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.companies.models import Company
from apps.core.exceptions import NotFound
from apps.rbac.gates import require_owner

logger = logging.getLogger(__name__)


class CompanyService:
    """
    Company lifecycle operations restricted to the Owner.

    A frozen company keeps all its data; the gates reject every request
    from its users with COMPANY_FROZEN until it is unfrozen.
    """

    @classmethod
    def _get_company(cls, company_id):
        try:
            return Company.objects.select_for_update().get(id=company_id)
        except (Company.DoesNotExist, ValidationError, ValueError):
            raise NotFound("Company not found")

    @classmethod
    def freeze_company(cls, principal, company_id, reason=''):
        """
        Suspend all company-user operations.

        Raises:
            OwnerRequired, NotFound
        """
        require_owner(principal, company_id=company_id)

        with transaction.atomic():
            company = cls._get_company(company_id)
            company.is_frozen = True
            company.frozen_at = timezone.now()
            company.frozen_reason = reason or ''
            company.save(update_fields=['is_frozen', 'frozen_at', 'frozen_reason', 'updated_at'])

        logger.warning(
            f"Company frozen: {company.id}",
            extra={'company_id': str(company.id), 'principal_id': str(principal.id), 'reason': reason}
        )
        return company

    @classmethod
    def unfreeze_company(cls, principal, company_id):
        """
        Lift a freeze.

        Raises:
            OwnerRequired, NotFound
        """
        require_owner(principal, company_id=company_id)

        with transaction.atomic():
            company = cls._get_company(company_id)
            company.is_frozen = False
            company.frozen_at = None
            company.frozen_reason = ''
            company.save(update_fields=['is_frozen', 'frozen_at', 'frozen_reason', 'updated_at'])

        logger.info(
            f"Company unfrozen: {company.id}",
            extra={'company_id': str(company.id), 'principal_id': str(principal.id)}
        )
        return company
