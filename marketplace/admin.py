"""
Django admin configuration for the marketplace models.

Booking status and reviews are read-only here: status only changes through
the booking lifecycle and reviews are never edited.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Booking, Principal, Review, ServiceOffering


@admin.register(Principal)
class PrincipalAdmin(BaseUserAdmin):
    """
    Admin interface for Principal.

    Extends Django's UserAdmin with the marketplace fields.
    """

    list_display = [
        'email',
        'display_name',
        'role',
        'is_verified',
        'is_active',
        'rating_average',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_verified',
        'is_active',
        'is_staff',
        'created_at',
    ]

    search_fields = [
        'email',
        'display_name',
        'phone_number',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email', 'password')
        }),
        (_('Profile'), {
            'fields': ('display_name', 'phone_number')
        }),
        (_('Role & Verification'), {
            'fields': ('role', 'is_verified', 'rating_average', 'review_count')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'email',
                'display_name',
                'role',
                'password1',
                'password2',
            ),
        }),
    )

    readonly_fields = ['rating_average', 'review_count', 'created_at', 'updated_at', 'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        """Role is fixed once the principal exists."""
        if obj:
            return self.readonly_fields + ['role']
        return []


@admin.register(ServiceOffering)
class ServiceOfferingAdmin(admin.ModelAdmin):
    """Admin interface for ServiceOffering model."""

    list_display = [
        'title',
        'provider',
        'base_price',
        'duration_minutes',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'is_active',
        'created_at',
    ]

    search_fields = [
        'title',
        'description',
        'provider__email',
    ]

    readonly_fields = ['created_at', 'updated_at']

    ordering = ['-created_at']

    list_per_page = 25


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for Booking model."""

    list_display = [
        'reference',
        'customer',
        'provider',
        'offering',
        'slot',
        'status',
        'total_amount',
        'created_at',
    ]

    list_filter = [
        'status',
        'slot',
        'created_at',
    ]

    search_fields = [
        'reference',
        'customer__email',
        'provider__email',
        'offering__title',
    ]

    readonly_fields = [
        'reference', 'status', 'status_changed_at', 'confirmed_at', 'completed_at',
        'cancelled_at', 'cancelled_by', 'cancellation_reason', 'total_amount', 'created_at',
    ]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('reference', 'customer', 'provider', 'offering')
        }),
        (_('Appointment'), {
            'fields': ('slot', 'duration_minutes', 'notes', 'provider_notes', 'total_amount')
        }),
        (_('Status'), {
            'fields': (
                'status', 'status_changed_at', 'confirmed_at', 'completed_at',
                'cancelled_at', 'cancelled_by', 'cancellation_reason',
            )
        }),
        (_('Timestamps'), {
            'fields': ('created_at',),
            'classes': ('collapse',),
        }),
    )

    def has_add_permission(self, request):
        return False


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    """Admin interface for Review model."""

    list_display = [
        'id',
        'customer',
        'provider',
        'booking',
        'rating',
        'created_at',
    ]

    list_filter = [
        'rating',
        'created_at',
    ]

    search_fields = [
        'customer__email',
        'provider__email',
        'comment',
    ]

    readonly_fields = ['booking', 'customer', 'provider', 'rating', 'comment', 'created_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
