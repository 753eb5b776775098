from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.utils.translation import gettext_lazy as _


class CustomUserManager(BaseUserManager):
    """
    Creates user with email instead of username
    Sets password with set_password()
    Allows to create superuser (role ADMIN)
    """
    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_('Users must have an email address'))

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', CustomUser.Role.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    class Role(models.TextChoices):
        USER = "USER", _("Client")
        ADMIN = "ADMIN", _("Administrator")

    username = None
    first_name = None
    last_name = None
    email = models.EmailField(_('email address'), unique=True)

    name = models.CharField(_('name'), max_length=100, blank=True, default='')
    phone = models.CharField(_('phone number'), max_length=30, blank=True, default='')
    company = models.CharField(_('company'), max_length=150, blank=True, default='')
    address = models.CharField(_('address'), max_length=255, blank=True, default='')
    role = models.CharField(_('role'), max_length=10, choices=Role.choices, default=Role.USER)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = CustomUserManager()

    def __str__(self):
        return self.email

    @property
    def is_admin(self):
        """Back-office rights: ADMIN role or Django staff flag."""
        return self.role == self.Role.ADMIN or self.is_staff

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name.split(' ')[0] if self.name else self.email
