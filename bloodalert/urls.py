"""bloodalert URL Configuration

JSON endpoints for the mobile client:
    /requests/  - create, accept, list and clean up blood requests
    /donor/     - device location and push token reports
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('requests/', include('blood.urls')),
    path('donor/', include('donor.urls')),
]
