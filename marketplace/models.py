"""
Persistent entities of the Service Spot marketplace.

Principal, ServiceOffering, Booking and Review. Sessions are stored by the
simplejwt token blacklist app (OutstandingToken / BlacklistedToken).
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser, UserManager
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import (
    BOOKING_NOTES_MAX_LENGTH,
    DISPLAY_NAME_MAX_LENGTH,
    OFFERING_TITLE_MAX_LENGTH,
    PHONE_NUMBER_MAX_LENGTH,
    RATING_MAX,
    RATING_MIN,
    validate_phone_number,
)


class Role(models.TextChoices):
    """Fixed set of principal roles. Values are compared exactly, never case-folded."""

    CUSTOMER = 'customer', _('Customer')
    PROVIDER = 'provider', _('Provider')
    ADMIN = 'admin', _('Administrator')


class BookingStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    CONFIRMED = 'confirmed', _('Confirmed')
    CANCELLED = 'cancelled', _('Cancelled')
    COMPLETED = 'completed', _('Completed')


TERMINAL_STATUSES = (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


class PrincipalManager(UserManager):
    """
    Manager that uses the email address as the username.

    Emails are normalised to lowercase so uniqueness is case-insensitive.
    """

    @classmethod
    def normalize_email(cls, email):
        """Strip and lowercase an email address; the form stored in both email and username."""
        return super().normalize_email((email or '').strip()).lower()

    def create_user(self, username=None, email=None, password=None, **extra_fields):
        email = self.normalize_email(email) if email else email
        return super().create_user(username or email, email=email, password=password, **extra_fields)

    def create_superuser(self, username=None, email=None, password=None, **extra_fields):
        email = self.normalize_email(email) if email else email
        extra_fields.setdefault('role', Role.ADMIN)
        extra_fields.setdefault('is_verified', True)
        return super().create_superuser(username or email, email=email, password=password, **extra_fields)


class Principal(AbstractUser):
    """
    Any actor of the marketplace: customer, provider or administrator.

    Additional fields:
    - email: Required, unique email address (stored lowercase)
    - display_name: Name shown to other users
    - phone_number: Optional phone number with validation
    - role: Fixed at creation, one of Role
    - is_verified: Set once by an administrator
    - rating_average / review_count: Cached provider rating, kept by signals
    - created_at / updated_at: Timestamps

    ``is_active`` (inherited) is the moderation flag: suspended accounts have it
    set to False.
    """

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    display_name = models.CharField(
        _('display name'),
        max_length=DISPLAY_NAME_MAX_LENGTH,
        blank=True,
        default='',
        help_text=_('Name shown to other users.')
    )

    phone_number = models.CharField(
        _('phone number'),
        max_length=PHONE_NUMBER_MAX_LENGTH,
        blank=True,
        default='',
        validators=[validate_phone_number],
        help_text=_('Optional. Enter phone number in international format.')
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=Role.choices,
        blank=False,
        null=False,
        help_text=_('Required. Fixed when the account is created.')
    )

    is_verified = models.BooleanField(
        _('verified status'),
        default=False,
        help_text=_('Set by an administrator once the identity has been checked.')
    )

    rating_average = models.DecimalField(
        _('rating average'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[
            MinValueValidator(Decimal('0.00'), message=_('Rating cannot be negative.')),
            MaxValueValidator(Decimal('5.00'), message=_('Rating cannot exceed 5.00.'))
        ],
        help_text=_('Cached average of reviews received as a provider.')
    )

    review_count = models.PositiveIntegerField(
        _('review count'),
        default=0,
        help_text=_('Cached number of reviews received as a provider.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    objects = PrincipalManager()

    class Meta:
        verbose_name = _('principal')
        verbose_name_plural = _('principals')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role']),
            models.Index(fields=['is_verified']),
            models.Index(fields=['is_active']),
        ]

    def __str__(self):
        return self.email or self.username

    def is_customer(self):
        return self.role == Role.CUSTOMER

    def is_provider(self):
        return self.role == Role.PROVIDER

    def is_admin(self):
        return self.role == Role.ADMIN

    def clean(self):
        """
        Normalise the email and require a role.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if self.role not in Role.values:
            raise ValidationError({
                'role': _('Role must be one of: %(roles)s.') % {'roles': ', '.join(Role.values)}
            })

    def save(self, *args, **kwargs):
        if self.email:
            # username mirrors the email so the login backend can match on it
            self.email = PrincipalManager.normalize_email(self.email)
            self.username = self.email
        super().save(*args, **kwargs)


class ServiceOffering(models.Model):
    """
    A service a provider offers, with its price and duration.

    Owned by exactly one provider and removed together with it.
    """

    provider = models.ForeignKey(
        Principal,
        on_delete=models.PROTECT,
        related_name='offerings',
        help_text=_('Provider offering this service')
    )

    title = models.CharField(
        _('title'),
        max_length=OFFERING_TITLE_MAX_LENGTH,
        help_text=_('Short name of the service')
    )

    description = models.TextField(
        _('description'),
        blank=True,
        default='',
        help_text=_('Detailed description of the service')
    )

    base_price = models.DecimalField(
        _('base price'),
        max_digits=10,
        decimal_places=2,
        help_text=_('Price charged for one booking')
    )

    duration_minutes = models.PositiveIntegerField(
        _('duration in minutes'),
        default=60,
        validators=[MinValueValidator(1)],
        help_text=_('Expected length of one appointment')
    )

    is_active = models.BooleanField(
        _('active'),
        default=True,
        help_text=_('Whether the offering can currently be booked')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('service offering')
        verbose_name_plural = _('service offerings')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['provider']),
            models.Index(fields=['is_active']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(base_price__gt=0),
                name='offering_base_price_positive',
            ),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        super().clean()

        if self.provider_id and not self.provider.is_provider():
            raise ValidationError({
                'provider': _('Only providers can own service offerings.')
            })

        if not self.title or not self.title.strip():
            raise ValidationError({
                'title': _('Title cannot be empty.')
            })

        if self.base_price is not None and self.base_price <= 0:
            raise ValidationError({
                'base_price': _('Base price must be greater than 0.')
            })


class Booking(models.Model):
    """
    A customer's request for an appointment with a provider.

    Status only changes through ``marketplace.services.bookings.transition_booking``,
    which applies a conditional update on (id, expected status).
    """

    reference = models.CharField(
        _('reference'),
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        help_text=_('Human readable reference, e.g. BK-2026-000042')
    )

    customer = models.ForeignKey(
        Principal,
        on_delete=models.PROTECT,
        related_name='customer_bookings',
        help_text=_('Customer making the booking')
    )

    provider = models.ForeignKey(
        Principal,
        on_delete=models.PROTECT,
        related_name='provider_bookings',
        help_text=_('Provider delivering the service')
    )

    offering = models.ForeignKey(
        ServiceOffering,
        on_delete=models.PROTECT,
        related_name='bookings',
        help_text=_('Service being booked')
    )

    slot = models.DateTimeField(
        _('slot'),
        help_text=_('Requested start time of the appointment')
    )

    duration_minutes = models.PositiveIntegerField(
        _('duration in minutes'),
        help_text=_('Copied from the offering at creation')
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=BookingStatus.choices,
        default=BookingStatus.PENDING,
    )

    notes = models.TextField(
        _('customer notes'),
        max_length=BOOKING_NOTES_MAX_LENGTH,
        blank=True,
        default='',
    )

    provider_notes = models.TextField(_('provider notes'), blank=True, default='')

    cancellation_reason = models.TextField(_('cancellation reason'), blank=True, default='')

    cancelled_by = models.CharField(
        _('cancelled by'),
        max_length=10,
        choices=[(Role.CUSTOMER.value, Role.CUSTOMER.label), (Role.PROVIDER.value, Role.PROVIDER.label)],
        blank=True,
        default='',
    )

    total_amount = models.DecimalField(
        _('total amount'),
        max_digits=10,
        decimal_places=2,
        help_text=_('Copied from the offering base price at creation')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    status_changed_at = models.DateTimeField(_('status changed at'))
    confirmed_at = models.DateTimeField(_('confirmed at'), null=True, blank=True)
    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)
    cancelled_at = models.DateTimeField(_('cancelled at'), null=True, blank=True)

    class Meta:
        verbose_name = _('booking')
        verbose_name_plural = _('bookings')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['customer']),
            models.Index(fields=['provider']),
            models.Index(fields=['offering']),
            models.Index(fields=['status']),
            models.Index(fields=['slot']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name='booking_total_amount_not_negative',
            ),
        ]

    def __str__(self):
        return self.reference or f'Booking #{self.pk}'

    def is_terminal(self):
        return self.status in TERMINAL_STATUSES


class Review(models.Model):
    """
    A customer's rating of a completed booking.

    Append-only: at most one per booking (enforced by the one-to-one column),
    never edited in place.
    """

    booking = models.OneToOneField(
        Booking,
        on_delete=models.PROTECT,
        related_name='review',
        help_text=_('Booking being reviewed (one review per booking)')
    )

    customer = models.ForeignKey(
        Principal,
        on_delete=models.PROTECT,
        related_name='reviews_written',
        help_text=_('Customer writing the review')
    )

    provider = models.ForeignKey(
        Principal,
        on_delete=models.PROTECT,
        related_name='reviews_received',
        help_text=_('Provider being reviewed')
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(RATING_MIN, message=_('Rating must be at least 1.')),
            MaxValueValidator(RATING_MAX, message=_('Rating must be at most 5.'))
        ],
        help_text=_('Rating from 1 to 5 stars')
    )

    comment = models.TextField(_('comment'))

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['customer']),
            models.Index(fields=['provider']),
            models.Index(fields=['rating']),
            models.Index(fields=['created_at']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(rating__gte=RATING_MIN) & models.Q(rating__lte=RATING_MAX),
                name='review_rating_in_range',
            ),
        ]

    def __str__(self):
        return f"Review by {self.customer.email} for {self.provider.email} - {self.rating}★"
