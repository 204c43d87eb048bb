"""
Company model.

A Company is the isolation boundary for roles, users and audit entries.
"""
from django.db import models
from apps.core.models import BaseModel


class CompanyManager(models.Manager):
    """Manager for company queries."""

    def active(self):
        """Return only active companies."""
        return self.filter(is_active=True)

    def for_owner(self, owner_id):
        """Return companies registered to an owner."""
        return self.filter(owner_id=owner_id)

    def is_registered_owner(self, company_id, user_id):
        """Whether user_id is the company user recorded as the company's owner."""
        return self.filter(
            id=company_id,
            registered_owner_user_id=user_id,
            registered_owner_user__company_id=company_id,
        ).exists()


class Company(BaseModel):
    """
    Business account owned by an Owner.

    ``is_active`` controls whether company users can authenticate at all;
    ``is_frozen`` suspends every operation for company users while
    leaving the Owner unaffected.
    """

    owner = models.ForeignKey(
        'rbac.Owner',
        on_delete=models.PROTECT,
        related_name='companies',
        db_index=True,
        help_text="Owner this company is registered to"
    )
    registered_owner_user = models.ForeignKey(
        'rbac.CompanyUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='registered_companies',
        help_text="Company user recorded as the owner of this company, if any"
    )
    name = models.CharField(
        max_length=200,
        help_text="Company display name"
    )
    email = models.EmailField(
        blank=True,
        help_text="Company contact email"
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive companies reject all company-user credentials"
    )
    is_frozen = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Frozen companies block all operations except for the Owner"
    )
    frozen_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the company was last frozen"
    )
    frozen_reason = models.CharField(
        max_length=255,
        blank=True,
        help_text="Reason recorded when freezing"
    )

    objects = CompanyManager()

    class Meta:
        db_table = 'companies'
        ordering = ['name']
        indexes = [
            models.Index(fields=['owner', 'is_active']),
        ]

    def __str__(self):
        return self.name
