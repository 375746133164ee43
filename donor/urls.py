from django.urls import path
from . import views

urlpatterns = [
    path('<int:pk>/location/', views.report_location_view, name='donor-report-location'),
    path('<int:pk>/token/', views.refresh_token_view, name='donor-refresh-token'),
]
