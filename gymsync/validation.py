from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .errors import ValidationError


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


@dataclass(frozen=True)
class Rule:
    field: str

    def normalize(self, record: dict[str, Any]) -> None:
        return None

    def check(self, record: Mapping[str, Any]) -> str | None:
        return None


@dataclass(frozen=True)
class Nullify(Rule):
    """Empty input counts as not provided."""

    def normalize(self, record: dict[str, Any]) -> None:
        if _is_blank(record.get(self.field)):
            record[self.field] = None


@dataclass(frozen=True)
class Required(Rule):
    message: str

    def check(self, record: Mapping[str, Any]) -> str | None:
        value = record.get(self.field)
        if _is_blank(value):
            return self.message
        return None


@dataclass(frozen=True)
class MinLength(Rule):
    length: int
    message: str

    def check(self, record: Mapping[str, Any]) -> str | None:
        value = record.get(self.field)
        if _is_blank(value):
            return None
        if len(str(value)) < self.length:
            return self.message
        return None


@dataclass(frozen=True)
class Email(Rule):
    message: str

    def check(self, record: Mapping[str, Any]) -> str | None:
        value = record.get(self.field)
        if _is_blank(value):
            return None
        if not EMAIL_RE.match(str(value).strip()):
            return self.message
        return None


@dataclass(frozen=True)
class RequiredIf(Rule):
    other: str
    message: str

    def check(self, record: Mapping[str, Any]) -> str | None:
        if _is_blank(record.get(self.other)):
            return None
        if _is_blank(record.get(self.field)):
            return self.message
        return None


@dataclass(frozen=True)
class MatchesField(Rule):
    other: str
    message: str

    def check(self, record: Mapping[str, Any]) -> str | None:
        value = record.get(self.field)
        if _is_blank(value):
            return None
        if value != record.get(self.other):
            return self.message
        return None


PROFILE_RULES: tuple[Rule, ...] = (
    Nullify("password"),
    Nullify("old_password"),
    Nullify("confirm_password"),
    Required("name", "Enter your name."),
    MinLength("password", 6, "Password must be at least 6 characters."),
    MatchesField("confirm_password", "password", "Password confirmation does not match."),
    RequiredIf("confirm_password", "password", "Confirm the new password."),
)

SIGN_UP_RULES: tuple[Rule, ...] = (
    Required("name", "Enter your name."),
    Required("email", "Enter your e-mail."),
    Email("email", "Invalid e-mail."),
    Required("password", "Enter a password."),
    MinLength("password", 6, "Password must be at least 6 characters."),
    Required("password_confirm", "Confirm the password."),
    MatchesField("password_confirm", "password", "Password confirmation does not match."),
)


class FormValidator:
    """Evaluates an ordered rule list against a whole candidate record.

    Normalization steps run first over a copy of the record, then every
    check runs in order. The first failing check per field is reported.
    """

    def __init__(self, rules: Sequence[Rule]):
        self.rules = tuple(rules)

    def normalize(self, record: Mapping[str, Any]) -> dict[str, Any]:
        candidate = dict(record)
        for rule in self.rules:
            rule.normalize(candidate)
        return candidate

    def validate(self, record: Mapping[str, Any]) -> dict[str, str]:
        candidate = self.normalize(record)
        errors: dict[str, str] = {}
        for rule in self.rules:
            if rule.field in errors:
                continue
            message = rule.check(candidate)
            if message:
                errors[rule.field] = message
        return errors

    def clean(self, record: Mapping[str, Any]) -> dict[str, Any]:
        candidate = self.normalize(record)
        errors = self.validate(candidate)
        if errors:
            raise ValidationError(errors)
        return candidate


class FormState:
    def __init__(self, validator: FormValidator, initial: Mapping[str, Any] | None = None):
        self.validator = validator
        self.values: dict[str, Any] = dict(initial or {})
        self.errors: dict[str, str] = {}

    def set(self, field: str, value: Any) -> None:
        self.values[field] = value

    def error_for(self, field: str) -> str | None:
        return self.errors.get(field)

    def submit(self) -> dict[str, Any] | None:
        """Validated, normalized payload, or None with ``errors`` filled in."""
        try:
            payload = self.validator.clean(self.values)
        except ValidationError as exc:
            self.errors = exc.errors
            return None
        self.errors = {}
        return payload
