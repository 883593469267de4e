# events/types.py
"""
Event type definitions for staffdesk.

These dataclasses are the payload schema of every domain event. emit()
validates each payload against its dataclass before the event is recorded.

Naming Convention: {aggregate}.{past_tense_verb}
Examples:
- company.created
- company_staff.deleted

Payloads carry the entity identifiers plus the caller's original input
where a reaction needs it (e.g. the contact person of a new company).
Passwords and one-time codes never appear in a payload.
"""

from dataclasses import dataclass, asdict, field, fields as dataclass_fields, MISSING
from typing import Optional, List, Dict, Any, get_type_hints, get_origin, get_args, Union
from datetime import date, datetime


# =============================================================================
# Event Validation
# =============================================================================

class InvalidEventPayload(Exception):
    """
    Raised when an event payload fails validation.

    This exception is raised at event emission time when the provided
    data does not match the expected schema for the event type.
    """
    def __init__(self, event_type: str, errors: List[str]):
        self.event_type = event_type
        self.errors = errors
        error_list = "\n  - ".join(errors)
        super().__init__(
            f"Invalid payload for event '{event_type}':\n  - {error_list}"
        )


def _is_optional_type(type_hint) -> bool:
    """Check if a type hint is Optional[X] (i.e., Union[X, None])."""
    origin = get_origin(type_hint)
    if origin is Union:
        args = get_args(type_hint)
        return type(None) in args
    return False


def _get_inner_type(type_hint):
    """Get the inner type from Optional[X]."""
    origin = get_origin(type_hint)
    if origin is Union:
        args = get_args(type_hint)
        non_none_args = [a for a in args if a is not type(None)]
        if len(non_none_args) == 1:
            return non_none_args[0]
    return type_hint


FORBIDDEN_KEYS = {"password", "otp", "otp_hash"}


def validate_event_payload(event_type: str, data: Dict[str, Any]) -> None:
    """
    Validate that a data dict matches the expected schema for an event type.

    Checks:
    1. Required fields are present (fields without defaults)
    2. No unexpected fields are provided (strict schema)
    3. Field types are correct (basic type checking)
    4. Role fields hold a known role
    5. No secrets anywhere in the payload

    Raises:
        InvalidEventPayload: If validation fails
        ValueError: If event_type has no registered schema
    """
    data_class = EVENT_DATA_CLASSES.get(event_type)
    if data_class is None:
        raise ValueError(
            f"No schema registered for event type '{event_type}'. "
            f"Add a dataclass to EVENT_DATA_CLASSES."
        )

    errors = []
    dc_fields = {f.name: f for f in dataclass_fields(data_class)}
    type_hints = get_type_hints(data_class)

    for field_name, field_info in dc_fields.items():
        required = (
            field_info.default is MISSING and
            field_info.default_factory is MISSING
        )
        if required and field_name not in data:
            errors.append(f"Missing required field: '{field_name}'")

    unexpected = set(data.keys()) - set(dc_fields.keys())
    if unexpected:
        errors.append(
            f"Unexpected fields: {sorted(unexpected)}. "
            f"Expected: {sorted(dc_fields.keys())}"
        )

    for field_name, value in data.items():
        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        if value is None:
            if not _is_optional_type(type_hint):
                errors.append(
                    f"Field '{field_name}' cannot be None (type: {type_hint})"
                )
            continue

        check_type = _get_inner_type(type_hint) if _is_optional_type(type_hint) else type_hint
        origin = get_origin(check_type)

        if origin is list or check_type is list:
            if not isinstance(value, list):
                errors.append(
                    f"Field '{field_name}' must be a list, got {type(value).__name__}"
                )
        elif origin is dict or check_type is dict:
            if not isinstance(value, dict):
                errors.append(
                    f"Field '{field_name}' must be a dict, got {type(value).__name__}"
                )
        elif check_type is str:
            if not isinstance(value, str):
                errors.append(
                    f"Field '{field_name}' must be a string, got {type(value).__name__}"
                )
        elif check_type is int:
            if not isinstance(value, int) or isinstance(value, bool):
                errors.append(
                    f"Field '{field_name}' must be an int, got {type(value).__name__}"
                )
        elif check_type is bool:
            if not isinstance(value, bool):
                errors.append(
                    f"Field '{field_name}' must be a bool, got {type(value).__name__}"
                )

    from accounts.roles import Role

    for name in ("role", "previous_role"):
        value = data.get(name)
        if value and value not in Role.values:
            errors.append(f"Field '{name}' has unknown role {value!r}")

    leaked = _find_secrets(data)
    if leaked:
        errors.append(f"Payload must not carry secrets: {sorted(leaked)}")

    if errors:
        raise InvalidEventPayload(event_type, errors)


def _find_secrets(value, path: str = "") -> set:
    found = set()
    if isinstance(value, dict):
        for key, item in value.items():
            here = f"{path}.{key}" if path else str(key)
            if str(key).lower() in FORBIDDEN_KEYS:
                found.add(here)
            found |= _find_secrets(item, here)
    elif isinstance(value, list):
        for idx, item in enumerate(value):
            found |= _find_secrets(item, f"{path}[{idx}]")
    return found


@dataclass
class BaseEventData:
    """Base class for all event data."""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON storage."""
        result = {}
        for key, value in asdict(self).items():
            if isinstance(value, (date, datetime)):
                result[key] = value.isoformat()
            else:
                result[key] = value
        return result


# =============================================================================
# User Events
# =============================================================================

@dataclass
class UserCreatedData(BaseEventData):
    user_public_id: str
    email: str
    first_name: str
    last_name: str
    roles: List[str]
    created_by_user_public_id: Optional[str] = None
    self_registered: bool = False


@dataclass
class UserUpdatedData(BaseEventData):
    user_public_id: str
    email: str
    changes: Dict[str, Any]
    roles: List[str] = field(default_factory=list)


@dataclass
class UserDeletedData(BaseEventData):
    user_public_id: str
    email: str
    removed_roles: List[str] = field(default_factory=list)
    removed_membership_public_id: Optional[str] = None


@dataclass
class PasswordResetRequestedData(BaseEventData):
    """A user asked for a reset code; the reaction issues and mails it."""
    user_public_id: str
    email: str


@dataclass
class PasswordResetData(BaseEventData):
    user_public_id: str
    email: str


# =============================================================================
# Company Events
# =============================================================================

@dataclass
class CompanyCreatedData(BaseEventData):
    """
    Data for company.created.

    contact_person is the caller's input; the provisioning reaction turns
    it into the company's COMPANY_ADMIN user and membership.
    """
    company_public_id: str
    name: str
    email: str
    contact_person: Dict[str, Any]
    company: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CompanyUpdatedData(BaseEventData):
    company_public_id: str
    name: str
    changes: Dict[str, Any]
    contact_person: Optional[Dict[str, Any]] = None


@dataclass
class CompanyDeletedData(BaseEventData):
    company_public_id: str
    name: str
    removed_membership_public_ids: List[str] = field(default_factory=list)
    affected_user_public_ids: List[str] = field(default_factory=list)


# =============================================================================
# Company Staff Events
# =============================================================================

@dataclass
class CompanyStaffCreatedData(BaseEventData):
    membership_public_id: str
    company_public_id: str
    user_public_id: str
    email: str
    first_name: str
    last_name: str
    role: str
    title: str = ""
    created_by_user_public_id: Optional[str] = None


@dataclass
class CompanyStaffUpdatedData(BaseEventData):
    membership_public_id: str
    company_public_id: str
    user_public_id: str
    changes: Dict[str, Any]
    role: str = ""
    previous_role: str = ""


@dataclass
class CompanyStaffDeletedData(BaseEventData):
    membership_public_id: str
    company_public_id: str
    user_public_id: str
    email: str


class EventTypes:
    """
    Registry of all event types.

    Naming convention: {aggregate}.{past_tense_verb}
    """

    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"
    USER_PASSWORD_RESET_REQUESTED = "user.password_reset_requested"
    USER_PASSWORD_RESET = "user.password_reset"

    COMPANY_CREATED = "company.created"
    COMPANY_UPDATED = "company.updated"
    COMPANY_DELETED = "company.deleted"

    COMPANY_STAFF_CREATED = "company_staff.created"
    COMPANY_STAFF_UPDATED = "company_staff.updated"
    COMPANY_STAFF_DELETED = "company_staff.deleted"


EVENT_DATA_CLASSES = {
    EventTypes.USER_CREATED: UserCreatedData,
    EventTypes.USER_UPDATED: UserUpdatedData,
    EventTypes.USER_DELETED: UserDeletedData,
    EventTypes.USER_PASSWORD_RESET_REQUESTED: PasswordResetRequestedData,
    EventTypes.USER_PASSWORD_RESET: PasswordResetData,

    EventTypes.COMPANY_CREATED: CompanyCreatedData,
    EventTypes.COMPANY_UPDATED: CompanyUpdatedData,
    EventTypes.COMPANY_DELETED: CompanyDeletedData,

    EventTypes.COMPANY_STAFF_CREATED: CompanyStaffCreatedData,
    EventTypes.COMPANY_STAFF_UPDATED: CompanyStaffUpdatedData,
    EventTypes.COMPANY_STAFF_DELETED: CompanyStaffDeletedData,
}
