from django.urls import path

from . import views

urlpatterns = [
    # Authentication endpoints
    path('auth/register/', views.RegisterView.as_view(), name='register'),
    path('auth/login/', views.LoginView.as_view(), name='login'),
    path('auth/logout/', views.LogoutView.as_view(), name='logout'),
    path('auth/me/', views.MeView.as_view(), name='me'),

    # Catalog endpoints
    path('offerings/', views.OfferingCreateView.as_view(), name='offering_create'),
    path('offerings/<int:pk>/', views.OfferingDetailView.as_view(), name='offering_detail'),
    path('offerings/<int:pk>/status/', views.OfferingStatusView.as_view(), name='offering_status'),
    path('providers/<int:provider_id>/offerings/', views.ProviderOfferingsView.as_view(), name='provider_offerings'),
    path('providers/<int:provider_id>/reviews/', views.ProviderReviewsView.as_view(), name='provider_reviews'),

    # Booking endpoints
    path('bookings/', views.BookingListCreateView.as_view(), name='booking_list'),
    path('bookings/<int:pk>/', views.BookingDetailView.as_view(), name='booking_detail'),
    path('bookings/<int:pk>/transition/', views.BookingTransitionView.as_view(), name='booking_transition'),
    path('bookings/<int:pk>/review/', views.BookingReviewView.as_view(), name='booking_review'),
    path('customers/<int:customer_id>/statistics/', views.CustomerStatisticsView.as_view(), name='customer_statistics'),

    # Administration endpoints
    path('admin/principals/', views.PrincipalListView.as_view(), name='principal_list'),
    path('admin/principals/pending/', views.PendingVerificationView.as_view(), name='pending_verifications'),
    path('admin/principals/<int:pk>/verify/', views.ModerationActionView.as_view(operation='verify'), name='principal_verify'),
    path('admin/principals/<int:pk>/suspend/', views.ModerationActionView.as_view(operation='suspend'), name='principal_suspend'),
    path('admin/principals/<int:pk>/reactivate/', views.ModerationActionView.as_view(operation='reactivate'), name='principal_reactivate'),
    path('admin/principals/<int:pk>/delete/', views.DeletePreviewView.as_view(), name='principal_delete'),
    path('admin/statistics/', views.PlatformStatisticsView.as_view(), name='platform_statistics'),
]
