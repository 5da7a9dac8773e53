"""
URL configuration for service_spot project.

The Django admin site lives under /admin/, the marketplace API under /api/.
"""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('marketplace.urls')),
]
