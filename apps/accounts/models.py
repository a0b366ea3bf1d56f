"""
Accounts models for the staffing engine.

Defines the custom User model. Users are the office staff (admins and
managers) who edit events and assign workers; every mutating service takes
one of them explicitly as `actor` and records it in the activity log.
Workers who staff shifts are NOT users (see apps.workforce).

Key design decisions:
  - AbstractBaseUser gives us full control over the user model
  - Email is the login identifier (no username)
  - Role is a simple enum field; authorization lives in the request layer
"""

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """Custom manager for the User model (email-based auth)."""

    def create_user(self, email: str, password: str = None, **extra_fields) -> "User":
        """
        Create and save a regular user with the given email and password.

        Args:
            email: The user's email address (used as login identifier).
            password: The raw password (will be hashed). None gives an unusable password.
            **extra_fields: Additional fields to set on the User model.

        Returns:
            The newly created User instance.

        Raises:
            ValueError: If email is not provided.
        """
        if not email:
            raise ValueError(_("The Email field must be set"))
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email: str, password: str, **extra_fields) -> "User":
        """Create and save an admin with is_staff and is_superuser forced on."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.Role.ADMIN)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    An office user who manages events and staffing.

    Roles:
      - ADMIN: full access, including bulk approvals
      - MANAGER: creates events, edits roles, assigns workers
    """

    class Role(models.TextChoices):
        ADMIN = "admin", _("Admin")
        MANAGER = "manager", _("Manager")

    email = models.EmailField(_("email address"), unique=True)
    first_name = models.CharField(_("first name"), max_length=150, blank=True)
    last_name = models.CharField(_("last name"), max_length=150, blank=True)

    role = models.CharField(max_length=10, choices=Role.choices, default=Role.MANAGER)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)  # Django admin access

    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _("user")
        verbose_name_plural = _("users")
        ordering = ["email"]

    def __str__(self) -> str:
        """Return the user's display name and role."""
        return f"{self.get_full_name() or self.email} ({self.get_role_display()})"

    def get_full_name(self) -> str:
        """Return the first_name plus the last_name, with a space in between."""
        return f"{self.first_name} {self.last_name}".strip()

    def get_short_name(self) -> str:
        """Return the first name, falling back to the email's local part."""
        return self.first_name or self.email.split("@")[0]

    @property
    def is_admin(self) -> bool:
        """Check if this user has the Admin role."""
        return self.role == self.Role.ADMIN
