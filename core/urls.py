"""
URL configuration for accounts, sessions and health.
"""
from django.urls import path
from .views import (
    AdminLoginView, AdminLogoutView, CustomerDeleteView, CustomerListView,
    HealthCheckView, LoginView, LogoutView, PasswordChangeView, ProfileView, RegisterView,
)

urlpatterns = [
    path('health/', HealthCheckView.as_view(), name='health'),
    path('register/', RegisterView.as_view(), name='register'),
    path('login/', LoginView.as_view(), name='login'),
    path('logout/', LogoutView.as_view(), name='logout'),
    path('admin/login/', AdminLoginView.as_view(), name='admin_login'),
    path('admin/logout/', AdminLogoutView.as_view(), name='admin_logout'),
    path('admin/users/', CustomerListView.as_view(), name='customer_list'),
    path('admin/users/<str:email>/', CustomerDeleteView.as_view(), name='customer_delete'),
    path('profile/', ProfileView.as_view(), name='profile'),
    path('profile/password/', PasswordChangeView.as_view(), name='password_change'),
]
