"""
Authentication models.

- User: email-based account, slim and auth-focused
- Profile: billing identity (name, phone, address) used to build the
  customer record sent to payment gateways

Related files:
    - managers.py: UserManager for email-based creation
    - signals.py: Auto-create Profile on user creation
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from core.models import BaseModel
from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    Usage:
        user = User.objects.create_user(email="ada@example.com", password="pw")
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    email_verified = models.BooleanField(
        default=False,
        help_text="Whether the user's email has been verified",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )
    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        try:
            return self.profile.full_name or self.email
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        try:
            return self.profile.first_name or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]


class Profile(BaseModel):
    """
    Personal and billing details for a user.

    Address fields are optional; gateways only receive an address when
    at least a country is set.

    Fields:
        user: OneToOne link to User (also the primary key)
        first_name / last_name: Billing name
        phone: Contact phone in E.164 or local format
        country / state / city / postal_code / address_line1 / address_line2:
            Billing address
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="profile",
    )
    first_name = models.CharField(max_length=150, blank=True, default="")
    last_name = models.CharField(max_length=150, blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")

    country = models.CharField(
        max_length=2,
        blank=True,
        default="",
        help_text="ISO 3166-1 alpha-2 country code",
    )
    state = models.CharField(max_length=100, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")
    address_line1 = models.CharField(max_length=255, blank=True, default="")
    address_line2 = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        verbose_name = "profile"
        verbose_name_plural = "profiles"

    def __str__(self):
        return f"Profile({self.user.email})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_address(self):
        return bool(self.country)
