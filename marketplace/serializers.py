"""
Serializers for the HTTP transport.

Input serializers only check the shape of a request; every business rule is
enforced by the core operation the view calls. Output serializers render the
entities the core returns.
"""

from rest_framework import serializers

from .models import Booking, Principal, Review, Role, ServiceOffering
from .services.bookings import TRANSITIONS
from .validators import DISPLAY_NAME_MAX_LENGTH, PHONE_NUMBER_MAX_LENGTH


class PrincipalSerializer(serializers.ModelSerializer):
    """Public view of a principal."""

    class Meta:
        model = Principal
        fields = [
            'id', 'email', 'display_name', 'phone_number', 'role',
            'is_active', 'is_verified', 'rating_average', 'review_count', 'created_at',
        ]
        read_only_fields = fields


class PrincipalSummarySerializer(serializers.ModelSerializer):
    """Nested representation used inside bookings and reviews."""

    class Meta:
        model = Principal
        fields = ['id', 'display_name', 'email', 'role']
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    """
    Signup request.

    Fields:
    - email: Required
    - password / confirm_password: Required, must match
    - display_name: Required
    - role: 'customer' or 'provider'
    - phone: Optional
    """

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})
    confirm_password = serializers.CharField(write_only=True, style={'input_type': 'password'})
    display_name = serializers.CharField(max_length=DISPLAY_NAME_MAX_LENGTH)
    role = serializers.ChoiceField(choices=[Role.CUSTOMER, Role.PROVIDER])
    phone = serializers.CharField(max_length=PHONE_NUMBER_MAX_LENGTH, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['password'] != attrs['confirm_password']:
            raise serializers.ValidationError({
                'confirm_password': 'Password fields did not match.'
            })
        return attrs


class ProfileUpdateSerializer(serializers.Serializer):
    display_name = serializers.CharField(max_length=DISPLAY_NAME_MAX_LENGTH, required=False)
    phone = serializers.CharField(max_length=PHONE_NUMBER_MAX_LENGTH, required=False, allow_blank=True)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, style={'input_type': 'password'})
    role = serializers.CharField(required=False, allow_null=True, default=None)


class OfferingSerializer(serializers.ModelSerializer):
    provider = PrincipalSummarySerializer(read_only=True)

    class Meta:
        model = ServiceOffering
        fields = [
            'id', 'provider', 'title', 'description', 'base_price',
            'duration_minutes', 'is_active', 'created_at',
        ]
        read_only_fields = fields


class OfferingCreateSerializer(serializers.Serializer):
    title = serializers.CharField()
    description = serializers.CharField(required=False, allow_blank=True, default='')
    base_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    duration_minutes = serializers.IntegerField()


class OfferingUpdateSerializer(serializers.Serializer):
    """Partial update; only the fields sent are changed."""

    title = serializers.CharField(required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    base_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    duration_minutes = serializers.IntegerField(required=False)


class OfferingStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class BookingSerializer(serializers.ModelSerializer):
    customer = PrincipalSummarySerializer(read_only=True)
    provider = PrincipalSummarySerializer(read_only=True)
    offering = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            'id', 'reference', 'customer', 'provider', 'offering', 'slot',
            'duration_minutes', 'status', 'notes', 'provider_notes',
            'cancellation_reason', 'cancelled_by', 'total_amount', 'created_at',
            'status_changed_at', 'confirmed_at', 'completed_at', 'cancelled_at',
        ]
        read_only_fields = fields

    def get_offering(self, obj):
        return {'id': obj.offering_id, 'title': obj.offering.title}


class BookingCreateSerializer(serializers.Serializer):
    provider_id = serializers.IntegerField()
    offering_id = serializers.IntegerField()
    slot = serializers.DateTimeField()
    notes = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)


class BookingTransitionSerializer(serializers.Serializer):
    event = serializers.ChoiceField(choices=list(TRANSITIONS))
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ReviewSerializer(serializers.ModelSerializer):
    customer = PrincipalSummarySerializer(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'booking', 'customer', 'provider', 'rating', 'comment', 'created_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    rating = serializers.IntegerField()
    comment = serializers.CharField(trim_whitespace=False)


class DeleteConfirmSerializer(serializers.Serializer):
    token = serializers.CharField()
    confirm = serializers.BooleanField(default=False)
