import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager, update_last_login
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from accounts.roles import Role
from store.write_barrier import auth_writes_allowed, bootstrap_writes_allowed, write_context_allowed


REPOSITORY_WRITE_CONTEXTS = {"repository", "auth", "bootstrap"}


def _guard_write(instance, action: str) -> None:
    if not write_context_allowed(REPOSITORY_WRITE_CONTEXTS) and not getattr(settings, "TESTING", False):
        raise RuntimeError(
            f"{instance.__class__.__name__} is a repository-owned model. "
            f"Direct {action} is only allowed within run_transaction()."
        )


class RepositoryOwnedModel(models.Model):
    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        _guard_write(self, "save")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        _guard_write(self, "delete")
        return super().delete(*args, **kwargs)


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The given email must be set")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        with bootstrap_writes_allowed():
            user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    username = None
    public_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    email = models.EmailField("email address", unique=True)
    phone_number = models.CharField(max_length=32, blank=True, default="")
    photo = models.CharField(max_length=500, blank=True, default="")

    # Password setup / reset one-time code, stored hashed.
    otp_hash = models.CharField(max_length=128, blank=True, default="")
    otp_expires_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["first_name", "last_name"]

    objects = UserManager()

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.email

    def save(self, *args, **kwargs):
        _guard_write(self, "save")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        _guard_write(self, "delete")
        return super().delete(*args, **kwargs)

    def check_password(self, raw_password):
        # A successful check may rehash and save the password.
        with auth_writes_allowed():
            return super().check_password(raw_password)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def record_last_login(sender, user, **kwargs):
    """user_logged_in receiver replacing Django's update_last_login."""
    with auth_writes_allowed():
        update_last_login(sender, user, **kwargs)


class UserRole(RepositoryOwnedModel):
    """A role held by a user, with the permission codes granted through it."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="roles")
    name = models.CharField(max_length=20, choices=Role.choices)
    permissions = models.JSONField(default=list)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["user", "name"], name="uniq_user_role_name"),
        ]

    def __str__(self):
        return f"{self.user_id}:{self.name}"


class Company(RepositoryOwnedModel):
    public_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=255, unique=True)
    address = models.CharField(max_length=255, blank=True, default="")
    phone_number = models.CharField(max_length=32, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    occupation = models.CharField(max_length=255, blank=True, default="")
    industry = models.CharField(max_length=255, blank=True, default="")
    website = models.CharField(max_length=255, blank=True, default="")
    registration_date = models.DateField(null=True, blank=True)
    tin = models.CharField("TIN", max_length=64, blank=True, default="")
    company_type = models.CharField(max_length=64, blank=True, default="")
    certificate = models.CharField(max_length=500, blank=True, default="")
    logo = models.CharField(max_length=500, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Company")
        verbose_name_plural = _("Companies")
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.name


class CompanyMembership(RepositoryOwnedModel):
    """Binds a user to the company they work for."""

    public_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="memberships")
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="membership")
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.COMPANY_USER)
    title = models.CharField(max_length=255, blank=True, default="N/A")
    phone_number = models.CharField(max_length=32, blank=True, default="")
    id_number = models.CharField(max_length=64, blank=True, default="")
    id_attachment = models.CharField(max_length=500, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["company", "user"], name="uniq_membership_company_user"),
            models.UniqueConstraint(
                fields=["phone_number"],
                condition=~Q(phone_number=""),
                name="uniq_membership_phone_number",
            ),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.company_id} ({self.role})"
