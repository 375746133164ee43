from django.urls import path
from . import views

urlpatterns = [
    path('', views.create_request_view, name='create-request'),
    path('active/', views.active_requests_view, name='active-requests'),
    path('cleanup/', views.cleanup_view, name='cleanup-requests'),
    path('<uuid:pk>/', views.request_detail_view, name='request-detail'),
    path('<uuid:pk>/accept/', views.accept_request_view, name='accept-request'),
]
