"""
URL configuration for the accounts API.

Endpoints:
- /auth/ - signup, login, token refresh, logout, profile, password reset
- /users/ - user management
- /companies/ - companies with their contact person
- /staff/ - company staff
"""

from django.urls import path

from .views import (
    # Auth
    SignupView,
    LoginView,
    RefreshView,
    LogoutView,
    MeView,
    PasswordResetRequestView,
    PasswordResetConfirmView,
    # Users
    UserListCreateView,
    UserDetailView,
    # Companies
    CompanyListCreateView,
    CompanyDetailView,
    CompanyStatsView,
    # Staff
    StaffListCreateView,
    StaffDetailView,
    StaffStatsView,
)

app_name = "accounts"

urlpatterns = [
    # ==========================================================================
    # Authentication
    # ==========================================================================
    path("auth/signup/", SignupView.as_view(), name="signup"),
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="token-refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("auth/me/", MeView.as_view(), name="me"),
    path("auth/password-reset/", PasswordResetRequestView.as_view(), name="password-reset"),
    path("auth/password-reset/confirm/", PasswordResetConfirmView.as_view(), name="password-reset-confirm"),

    # ==========================================================================
    # Users
    # ==========================================================================
    path("users/", UserListCreateView.as_view(), name="user-list"),
    path("users/<uuid:id>/", UserDetailView.as_view(), name="user-detail"),

    # ==========================================================================
    # Companies
    # ==========================================================================
    path("companies/", CompanyListCreateView.as_view(), name="company-list"),
    path("companies/stats/<int:year>/", CompanyStatsView.as_view(), name="company-stats"),
    path("companies/<uuid:id>/", CompanyDetailView.as_view(), name="company-detail"),

    # ==========================================================================
    # Staff
    # ==========================================================================
    path("staff/", StaffListCreateView.as_view(), name="staff-list"),
    path("staff/stats/<int:year>/", StaffStatsView.as_view(), name="staff-stats"),
    path("staff/<uuid:id>/", StaffDetailView.as_view(), name="staff-detail"),
]
