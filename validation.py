"""
Field rules for the sign-up forms.

Rules are declared in order and all of them run; every failed rule adds its
own violation, so one field can be reported more than once.
"""
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, ValidationError

from schemas import Role

# letters, digits, space, hyphen and underscore
TEXT_PATTERN = re.compile(r"[a-z0-9\-_\s]+", re.IGNORECASE | re.ASCII)
DIGITS_PATTERN = re.compile(r"[0-9]+")

PASSWORD_MIN = 6
PASSWORD_MAX = 20


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


def matches_text(value: str, fields: Mapping[str, str]) -> bool:
    return bool(TEXT_PATTERN.fullmatch(value))


def password_length(value: str, fields: Mapping[str, str]) -> bool:
    return PASSWORD_MIN <= len(value) <= PASSWORD_MAX


def passwords_equal(value: str, fields: Mapping[str, str]) -> bool:
    return value == fields["password_repeat"]


def is_email(value: str, fields: Mapping[str, str]) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def not_empty(value: str, fields: Mapping[str, str]) -> bool:
    return value != ""


def is_int(value: str, fields: Mapping[str, str]) -> bool:
    return bool(DIGITS_PATTERN.fullmatch(value))


Rule = Tuple[str, str, Callable[[str, Mapping[str, str]], bool], Optional[Role]]

RULES: List[Rule] = [
    ("name", "Enter a valid name!", matches_text, None),
    ("password", "Password: 6 to 20 characters required", password_length, None),
    ("password", "Passwords do not match", passwords_equal, None),
    ("email", "Enter a valid email!", is_email, None),
    ("phone", "Enter a valid phone number", not_empty, None),
    ("address", "Enter a valid address", matches_text, None),
    ("city", "Enter a valid city", matches_text, None),
    ("transportation", "Enter a valid form of transportation", matches_text, Role.DELIVERER),
    ("credit", "Enter a valid credit card number", is_int, None),
]


def as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize(fields: Mapping[str, Any]) -> Dict[str, str]:
    """String values for every field a sign-up form may carry."""
    names = {rule[0] for rule in RULES} | {"password_repeat"}
    return {name: as_text(fields.get(name)) for name in names}


def validate_signup(fields: Mapping[str, Any], role: Role) -> List[Violation]:
    """Check a sign-up form. Returns the violations in rule order, empty when valid."""
    fields = normalize(fields)
    violations = []
    for field, message, check, only_for in RULES:
        if only_for is not None and only_for is not role:
            continue
        value = fields[field]
        if not check(value, fields):
            violations.append(Violation(field=field, message=message))
    return violations


def violations_from(exc: ValidationError, messages: Mapping[str, str], default: str) -> List[Violation]:
    """One violation per failing field of a pydantic model, in error order."""
    fields = []
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else ""
        if field not in fields:
            fields.append(field)
    return [Violation(field=f, message=messages.get(f, default)) for f in fields]
