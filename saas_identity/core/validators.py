"""Input shaping for registration and user payloads."""
from __future__ import annotations
from typing import Any, Dict, Iterable

from .errors import ValidationError

REGISTRATION_FIELDS = (
    "userName", "companyName", "accountName", "ownerName", "tier", "email", "role", "firstName", "lastName",
)
USER_FIELDS = ("userName", "firstName", "lastName", "email", "role", "tier")


def require_json_object(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _strings(body: Dict[str, Any], fields: Iterable[str]) -> Dict[str, str]:
    shaped = {}
    for field in fields:
        value = body.get(field)
        if value is None:
            continue
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{field} must be a string")
        shaped[field] = str(value).strip()
    return shaped


def validate_user_name(raw: str) -> str:
    """Trim a user name; Cognito user names cannot contain whitespace."""
    name = (raw or "").strip()
    if not name:
        raise ValidationError("userName is required")
    if len(name) > 128:
        raise ValidationError("userName exceeds maximum length")
    if any(char.isspace() for char in name):
        raise ValidationError("userName cannot contain whitespace")
    return name


def validate_email(email: str) -> str:
    """Validate email address.

    Raises:
        ValidationError: If email is invalid
    """
    email = email.strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValidationError("Invalid email format")
    if len(email) > 254:
        raise ValidationError("Email exceeds maximum length")

    return email


def shape_registration(body: Any) -> Dict[str, str]:
    """Keep the registration fields, require a user name, check the email if present."""
    shaped = _strings(require_json_object(body), REGISTRATION_FIELDS)
    shaped["userName"] = validate_user_name(shaped.get("userName", ""))
    if shaped.get("email"):
        shaped["email"] = validate_email(shaped["email"])
    return shaped


def shape_user(body: Any, require_user_name: bool = True) -> Dict[str, str]:
    shaped = _strings(require_json_object(body), USER_FIELDS)
    if require_user_name or "userName" in shaped:
        shaped["userName"] = validate_user_name(shaped.get("userName", ""))
    if shaped.get("email"):
        shaped["email"] = validate_email(shaped["email"])
    return shaped


def shape_admin_user(body: Any) -> Dict[str, str]:
    """Payload posted by the registration services to /user/reg and /user/system."""
    body = require_json_object(body)
    shaped = shape_registration(body)
    tenant_id = body.get("tenant_id")
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise ValidationError("tenant_id is required")
    shaped["tenant_id"] = tenant_id.strip()
    return shaped
