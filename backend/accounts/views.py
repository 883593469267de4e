# accounts/views.py
"""
HTTP layer for auth, users, companies and company staff.

Views parse and validate the request body, resolve the actor and hand
over to accounts.commands / accounts.queries. Every response, success or
failure, is the common envelope; errors raised by services are rendered
by common.responses.envelope_exception_handler.
"""

from django.contrib.auth import authenticate, get_user_model
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from accounts import commands, queries
from accounts.authz import resolve_actor
from accounts.serializers import (
    CompanyCreateSerializer,
    CompanyUpdateSerializer,
    LoginSerializer,
    PasswordResetConfirmSerializer,
    PasswordResetRequestSerializer,
    SignupSerializer,
    StaffCreateSerializer,
    StaffUpdateSerializer,
    UserCreateSerializer,
    UserSerializer,
    UserUpdateSerializer,
)
from accounts.throttles import LoginThrottle, PasswordResetThrottle, SignupThrottle
from accounts.uploads import request_payload
from common.errors import AuthorizationError, DenyReason, FieldError, ValidationError
from common.responses import envelope

User = get_user_model()


def _validated(serializer_class, data, partial=False) -> dict:
    serializer = serializer_class(data=data, partial=partial)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def _tokens_for(user) -> dict:
    refresh = RefreshToken.for_user(user)
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


def _list_params(request) -> dict:
    params = request.query_params
    try:
        page = max(int(params.get("page", 1)), 1)
        limit = min(max(int(params.get("limit", queries.DEFAULT_PAGE_SIZE)), 1), 100)
    except (TypeError, ValueError):
        raise ValidationError([FieldError("page", "page and limit must be integers")])
    return {"search": params.get("search", ""), "page": page, "limit": limit}


# =============================================================================
# Auth
# =============================================================================

class SignupView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [SignupThrottle]

    def post(self, request):
        data = _validated(SignupSerializer, request_payload(request, folder="users"))
        result = commands.register_client(data)
        user = User.objects.get(public_id=result.data["id"])
        result.data = {"user": result.data, **_tokens_for(user)}
        return result.to_response()


class LoginView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [LoginThrottle]

    def post(self, request):
        data = _validated(LoginSerializer, request.data)
        user = authenticate(request=request, email=data["email"].strip().lower(), password=data["password"])
        if user is None:
            raise AuthorizationError(DenyReason.UNAUTHENTICATED, "Invalid email or password")

        body = {
            "user": UserSerializer(user).data,
            "roles": list(user.roles.values_list("name", flat=True)),
            **_tokens_for(user),
        }
        return Response(envelope(200, "Logged in successfully", data=body))


class RefreshView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = TokenRefreshSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError:
            raise AuthorizationError(DenyReason.UNAUTHENTICATED, "Invalid or expired refresh token")
        return Response(envelope(200, "Token refreshed", data=serializer.validated_data))


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            raise ValidationError([FieldError("refresh", "Refresh token required")])
        try:
            RefreshToken(refresh_token).blacklist()
        except TokenError:
            raise ValidationError([FieldError("refresh", "Invalid token")])
        return Response(envelope(200, "Logged out successfully"))


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return queries.get_me(resolve_actor(request)).to_response()


class PasswordResetRequestView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [PasswordResetThrottle]

    def post(self, request):
        data = _validated(PasswordResetRequestSerializer, request.data)
        return commands.request_password_reset(data["email"]).to_response()


class PasswordResetConfirmView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [PasswordResetThrottle]

    def post(self, request):
        data = _validated(PasswordResetConfirmSerializer, request.data)
        return commands.reset_password(data["email"], data["otp"], data["new_password"]).to_response()


# =============================================================================
# Users
# =============================================================================

class UserListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return queries.list_users(resolve_actor(request), **_list_params(request)).to_response()

    def post(self, request):
        actor = resolve_actor(request)
        data = _validated(UserCreateSerializer, request_payload(request, folder="users"))
        return commands.create_user(actor, data).to_response()


class UserDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, id):
        return queries.get_user(resolve_actor(request), id).to_response()

    def patch(self, request, id):
        actor = resolve_actor(request)
        data = _validated(UserUpdateSerializer, request_payload(request, folder="users"), partial=True)
        return commands.update_user(actor, id, data).to_response()

    put = patch

    def delete(self, request, id):
        return commands.delete_user(resolve_actor(request), id).to_response()


# =============================================================================
# Companies
# =============================================================================

COMPANY_NESTED = ("company", "contact_person")


class CompanyListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return queries.list_companies(resolve_actor(request), **_list_params(request)).to_response()

    def post(self, request):
        actor = resolve_actor(request)
        payload = request_payload(request, nested=COMPANY_NESTED, folder="companies")
        data = _validated(CompanyCreateSerializer, payload)
        return commands.create_company(actor, data).to_response()


class CompanyDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, id):
        return queries.get_company(resolve_actor(request), id).to_response()

    def patch(self, request, id):
        actor = resolve_actor(request)
        payload = request_payload(request, nested=COMPANY_NESTED, folder="companies")
        data = _validated(CompanyUpdateSerializer, payload, partial=True)
        return commands.update_company(actor, id, data).to_response()

    put = patch

    def delete(self, request, id):
        return commands.delete_company(resolve_actor(request), id).to_response()


class CompanyStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, year):
        return queries.companies_count_by_month(resolve_actor(request), year).to_response()


# =============================================================================
# Company staff
# =============================================================================

class StaffListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = _list_params(request)
        company_id = request.query_params.get("company_id")
        return queries.list_staff(resolve_actor(request), company_public_id=company_id, **params).to_response()

    def post(self, request):
        actor = resolve_actor(request)
        data = _validated(StaffCreateSerializer, request_payload(request, folder="staff"))
        return commands.create_staff(actor, data).to_response()


class StaffDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, id):
        return queries.get_staff_member(resolve_actor(request), id).to_response()

    def patch(self, request, id):
        actor = resolve_actor(request)
        data = _validated(StaffUpdateSerializer, request_payload(request, folder="staff"), partial=True)
        return commands.update_staff(actor, id, data).to_response()

    put = patch

    def delete(self, request, id):
        return commands.delete_staff(resolve_actor(request), id).to_response()


class StaffStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, year):
        company_id = request.query_params.get("company_id")
        return queries.staff_count_by_month(resolve_actor(request), year, company_id).to_response()
