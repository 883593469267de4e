from rest_framework import serializers

from .models import Company, CompanyMembership, User, UserRole
from .roles import Role


# =============================================================================
# Output
# =============================================================================

class UserRoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserRole
        fields = ("name", "permissions")


class UserSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(source="public_id", read_only=True)
    roles = UserRoleSerializer(many=True, read_only=True)

    class Meta:
        model = User
        fields = (
            "id",
            "email",
            "first_name",
            "last_name",
            "phone_number",
            "photo",
            "is_active",
            "roles",
            "created_at",
            "updated_at",
        )


class ContactPersonSerializer(serializers.ModelSerializer):
    """The COMPANY_ADMIN membership of a company, flattened with its user."""

    id = serializers.UUIDField(source="user.public_id", read_only=True)
    membership_id = serializers.UUIDField(source="public_id", read_only=True)
    first_name = serializers.CharField(source="user.first_name", read_only=True)
    last_name = serializers.CharField(source="user.last_name", read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = CompanyMembership
        fields = (
            "id",
            "membership_id",
            "first_name",
            "last_name",
            "email",
            "phone_number",
            "title",
            "id_number",
            "id_attachment",
        )


class CompanySerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(source="public_id", read_only=True)

    class Meta:
        model = Company
        fields = (
            "id",
            "name",
            "address",
            "phone_number",
            "email",
            "occupation",
            "industry",
            "website",
            "registration_date",
            "tin",
            "company_type",
            "certificate",
            "logo",
            "is_active",
            "created_at",
            "updated_at",
        )


class StaffSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(source="public_id", read_only=True)
    user_id = serializers.UUIDField(source="user.public_id", read_only=True)
    company_id = serializers.UUIDField(source="company.public_id", read_only=True)
    company_name = serializers.CharField(source="company.name", read_only=True)
    first_name = serializers.CharField(source="user.first_name", read_only=True)
    last_name = serializers.CharField(source="user.last_name", read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = CompanyMembership
        fields = (
            "id",
            "user_id",
            "company_id",
            "company_name",
            "first_name",
            "last_name",
            "email",
            "phone_number",
            "role",
            "title",
            "id_number",
            "id_attachment",
            "is_active",
            "created_at",
            "updated_at",
        )


# =============================================================================
# Input
# =============================================================================

class SignupSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    photo = serializers.CharField(max_length=500, required=False, allow_blank=True)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class UserCreateSerializer(SignupSerializer):
    role = serializers.ChoiceField(choices=Role.choices, default=Role.CLIENT)


class UserUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150, required=False)
    last_name = serializers.CharField(max_length=150, required=False)
    email = serializers.EmailField(required=False)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    photo = serializers.CharField(max_length=500, required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)
    role = serializers.ChoiceField(choices=Role.choices, required=False)


class CompanyFieldsSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    occupation = serializers.CharField(max_length=255, required=False, allow_blank=True)
    industry = serializers.CharField(max_length=255, required=False, allow_blank=True)
    website = serializers.CharField(max_length=255, required=False, allow_blank=True)
    registration_date = serializers.DateField(required=False, allow_null=True)
    tin = serializers.CharField(max_length=64, required=False, allow_blank=True)
    company_type = serializers.CharField(max_length=64, required=False, allow_blank=True)
    certificate = serializers.CharField(max_length=500, required=False, allow_blank=True)
    logo = serializers.CharField(max_length=500, required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)


class ContactPersonInputSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    id_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    id_attachment = serializers.CharField(max_length=500, required=False, allow_blank=True)


class CompanyCreateSerializer(serializers.Serializer):
    company = CompanyFieldsSerializer()
    contact_person = ContactPersonInputSerializer()


class CompanyUpdateSerializer(serializers.Serializer):
    """Used with partial=True: every nested field becomes optional."""

    company = CompanyFieldsSerializer(required=False)
    contact_person = ContactPersonInputSerializer(required=False)


class StaffCreateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=Role.choices, default=Role.COMPANY_USER)
    id_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    id_attachment = serializers.CharField(max_length=500, required=False, allow_blank=True)
    company_id = serializers.UUIDField(required=False)


class StaffUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150, required=False)
    last_name = serializers.CharField(max_length=150, required=False)
    email = serializers.EmailField(required=False)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=Role.choices, required=False)
    id_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    id_attachment = serializers.CharField(max_length=500, required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordResetConfirmSerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.CharField(max_length=16)
    new_password = serializers.CharField(write_only=True)
