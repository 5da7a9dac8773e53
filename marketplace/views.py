"""
HTTP transport for the Service Spot marketplace.

Views parse the request, call one core operation with ``request.auth`` (the
caller's Session, or None) and render the result. Failures raised by the core
are turned into responses by ``marketplace_exception_handler``.
"""

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView, exception_handler

from . import exceptions
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingTransitionSerializer,
    DeleteConfirmSerializer,
    LoginSerializer,
    OfferingCreateSerializer,
    OfferingSerializer,
    OfferingStatusSerializer,
    OfferingUpdateSerializer,
    PrincipalSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
)
from .services import bookings, catalog, identity, moderation, reviews, statistics

logger = logging.getLogger(__name__)

# Checked in order; subclasses come before their bases
STATUS_BY_ERROR = [
    (exceptions.ValidationError, status.HTTP_400_BAD_REQUEST),
    (exceptions.Unauthenticated, status.HTTP_401_UNAUTHORIZED),
    (exceptions.Forbidden, status.HTTP_403_FORBIDDEN),
    (exceptions.NotFound, status.HTTP_404_NOT_FOUND),
    (exceptions.InvalidTransition, status.HTTP_409_CONFLICT),
    (exceptions.Conflict, status.HTTP_409_CONFLICT),
    (exceptions.Internal, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc):
    for error_class, code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def marketplace_exception_handler(exc, context):
    """
    Map core failures to HTTP responses.

    Body: ``{"detail": <message>, "code": <kind>}``. Everything else falls
    through to DRF's default handler.
    """
    if isinstance(exc, exceptions.MarketplaceError):
        response = Response({'detail': exc.detail, 'code': exc.kind}, status=status_for(exc))
        if isinstance(exc, exceptions.Unauthenticated):
            response['WWW-Authenticate'] = 'Bearer'
        return response

    return exception_handler(exc, context)


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def validated(serializer_class, request):
    serializer = serializer_class(data=request.data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def session_payload(session):
    return {
        'token': session.token,
        'principal_id': session.principal_id,
        'role': session.role,
        'issued_at': session.issued_at,
    }


# ============================================================================
# Identity
# ============================================================================

class RegisterView(APIView):
    """
    POST /api/auth/register/
    Request body: {"email", "password", "confirm_password", "display_name", "role", "phone"}

    Success response (201): the new principal.
    Error responses: 400 invalid input, 409 email already registered.
    """
    permission_classes = [AllowAny]
    public = True

    def post(self, request, *args, **kwargs):
        data = validated(RegisterSerializer, request)
        principal = identity.register_principal(
            email=data['email'],
            password=data['password'],
            display_name=data['display_name'],
            role=data['role'],
            phone=data['phone'],
        )
        return Response(PrincipalSerializer(principal).data, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    API endpoint for login.

    Security features:
    - Rate limiting through the 'login' throttle scope
    - Generic error message for unknown email and wrong password
    - Suspended accounts are told apart (403) from bad credentials (401)

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "...", "role": "customer"}

    Success response (200):
    {
        "token": "<session token>",
        "principal_id": 1,
        "role": "customer",
        "issued_at": "2026-10-19T10:00:00Z",
        "principal": {...}
    }
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        data = validated(LoginSerializer, request)
        try:
            session = identity.authenticate(data['email'], data['password'], data['role'])
        except exceptions.MarketplaceError as exc:
            logger.warning(
                f"Login refused ({exc.kind}). Email: {data['email'].lower()}, "
                f"IP: {get_client_ip(request)}"
            )
            raise

        principal = identity.resolve(session)
        payload = session_payload(session)
        payload['principal'] = PrincipalSerializer(principal).data
        return Response(payload, status=status.HTTP_200_OK)


class LogoutView(APIView):
    """POST /api/auth/logout/ ends the presented session. Always 204."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, *args, **kwargs):
        header = request.META.get('HTTP_AUTHORIZATION', '').split()
        if len(header) == 2 and header[0].lower() == 'bearer':
            try:
                session = identity.Session.from_token(header[1])
            except exceptions.SessionExpired:
                session = None
            identity.invalidate(session)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(APIView):
    """
    GET   /api/auth/me/ returns the caller's principal.
    PATCH /api/auth/me/ {"display_name", "phone"} updates it; both optional.
    """

    def get(self, request, *args, **kwargs):
        principal = identity.resolve(request.auth)
        return Response(PrincipalSerializer(principal).data)

    def patch(self, request, *args, **kwargs):
        data = validated(ProfileUpdateSerializer, request)
        principal = identity.update_profile(request.auth, **data)
        return Response(PrincipalSerializer(principal).data)


# ============================================================================
# Catalog and reviews (public reads)
# ============================================================================

class OfferingCreateView(APIView):
    """POST /api/offerings/ (providers only)."""

    def post(self, request, *args, **kwargs):
        data = validated(OfferingCreateSerializer, request)
        offering = catalog.create_offering(
            request.auth,
            title=data['title'],
            base_price=data['base_price'],
            duration_minutes=data['duration_minutes'],
            description=data['description'],
        )
        return Response(OfferingSerializer(offering).data, status=status.HTTP_201_CREATED)


class OfferingDetailView(APIView):
    """
    PATCH  /api/offerings/<pk>/ changes title, description, base_price or duration_minutes.
    DELETE /api/offerings/<pk>/ removes an offering that was never booked (204).

    Owning provider only.
    """

    def patch(self, request, pk, *args, **kwargs):
        data = validated(OfferingUpdateSerializer, request)
        offering = catalog.update_offering(request.auth, pk, **data)
        return Response(OfferingSerializer(offering).data)

    def delete(self, request, pk, *args, **kwargs):
        catalog.delete_offering(request.auth, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class OfferingStatusView(APIView):
    """PATCH /api/offerings/<pk>/status/ {"is_active": false} hides or shows an offering."""

    def patch(self, request, pk, *args, **kwargs):
        data = validated(OfferingStatusSerializer, request)
        offering = catalog.set_offering_active(request.auth, pk, data['is_active'])
        return Response(OfferingSerializer(offering).data)


class ProviderOfferingsView(APIView):
    """GET /api/providers/<provider_id>/offerings/"""
    permission_classes = [AllowAny]
    public = True

    def get(self, request, provider_id, *args, **kwargs):
        offerings = catalog.list_offerings(provider_id)
        return Response(OfferingSerializer(offerings, many=True).data)


class ProviderReviewsView(APIView):
    """
    GET /api/providers/<provider_id>/reviews/

    Success response (200):
    {
        "average_rating": 4.0,
        "statistics": {"average_rating": 4.0, "total_reviews": 3, ...},
        "reviews": [...]
    }
    """
    permission_classes = [AllowAny]
    public = True

    def get(self, request, provider_id, *args, **kwargs):
        return Response({
            'average_rating': reviews.average_rating(provider_id),
            'statistics': reviews.provider_rating_statistics(provider_id),
            'reviews': ReviewSerializer(reviews.list_reviews(provider_id), many=True).data,
        })


# ============================================================================
# Bookings
# ============================================================================

class BookingListCreateView(APIView):
    """
    GET  /api/bookings/?principal_id=<id>&role=<role>
    POST /api/bookings/  {"provider_id", "offering_id", "slot", "notes"}
    """

    def get(self, request, *args, **kwargs):
        principal_id = request.query_params.get('principal_id')
        if principal_id is not None:
            try:
                principal_id = int(principal_id)
            except ValueError:
                raise exceptions.ValidationError('principal_id: A valid integer is required.')

        result = bookings.list_bookings(
            request.auth,
            principal_id=principal_id,
            role=request.query_params.get('role') or None,
        )
        return Response(BookingSerializer(result, many=True).data)

    def post(self, request, *args, **kwargs):
        data = validated(BookingCreateSerializer, request)
        booking = bookings.create_booking(
            request.auth,
            provider_id=data['provider_id'],
            offering_id=data['offering_id'],
            slot=data['slot'],
            notes=data['notes'],
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    """GET /api/bookings/<pk>/"""

    def get(self, request, pk, *args, **kwargs):
        booking = bookings.get_booking(request.auth, pk)
        return Response(BookingSerializer(booking).data)


class BookingTransitionView(APIView):
    """
    POST /api/bookings/<pk>/transition/
    Request body: {"event": "accept", "reason": "optional"}

    Success response (200): the booking as stored after the transition.
    Error responses: 401, 403 wrong party, 404, 409 status mismatch or lost race.
    """

    def post(self, request, pk, *args, **kwargs):
        data = validated(BookingTransitionSerializer, request)
        booking = bookings.transition_booking(request.auth, pk, data['event'], reason=data['reason'])
        return Response(BookingSerializer(booking).data)


class BookingReviewView(APIView):
    """
    POST /api/bookings/<pk>/review/
    Request body: {"rating": 5, "comment": "Great service, very prompt."}
    """

    def post(self, request, pk, *args, **kwargs):
        data = validated(ReviewCreateSerializer, request)
        review = reviews.create_review(request.auth, pk, data['rating'], data['comment'])
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


class CustomerStatisticsView(APIView):
    """GET /api/customers/<customer_id>/statistics/"""

    def get(self, request, customer_id, *args, **kwargs):
        return Response(statistics.customer_statistics(request.auth, customer_id))


# ============================================================================
# Administration
# ============================================================================

class PrincipalListView(APIView):
    """GET /api/admin/principals/?role=<role>&active=<true|false>"""

    def get(self, request, *args, **kwargs):
        active = request.query_params.get('active')
        if active is not None:
            active = active.lower() in ('1', 'true', 'yes')

        principals = moderation.list_principals(
            request.auth,
            role=request.query_params.get('role') or None,
            active=active,
        )
        return Response(PrincipalSerializer(principals, many=True).data)


class PendingVerificationView(APIView):
    """GET /api/admin/principals/pending/"""

    def get(self, request, *args, **kwargs):
        principals = moderation.pending_verifications(request.auth)
        return Response(PrincipalSerializer(principals, many=True).data)


class ModerationActionView(APIView):
    """
    POST /api/admin/principals/<pk>/verify/
    POST /api/admin/principals/<pk>/suspend/
    POST /api/admin/principals/<pk>/reactivate/
    """
    operation = None

    OPERATIONS = {
        'verify': moderation.verify_principal,
        'suspend': moderation.suspend_principal,
        'reactivate': moderation.reactivate_principal,
    }

    def post(self, request, pk, *args, **kwargs):
        principal = self.OPERATIONS[self.operation](request.auth, pk)
        return Response(PrincipalSerializer(principal).data)


class DeletePreviewView(APIView):
    """
    GET /api/admin/principals/<pk>/delete/

    Returns the cascade summary and the confirmation token for the DELETE call.
    """

    def get(self, request, pk, *args, **kwargs):
        return Response(moderation.preview_delete(request.auth, pk))

    def delete(self, request, pk, *args, **kwargs):
        """
        DELETE /api/admin/principals/<pk>/delete/
        Request body: {"token": "<confirmation_token>", "confirm": true}
        """
        data = validated(DeleteConfirmSerializer, request)
        removed = moderation.confirm_delete(request.auth, pk, data['token'], confirm=data['confirm'])
        return Response(removed)


class PlatformStatisticsView(APIView):
    """GET /api/admin/statistics/"""

    def get(self, request, *args, **kwargs):
        return Response(statistics.get_platform_statistics(request.auth))
