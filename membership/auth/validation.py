"""Form validation for signup and login.

Each rule fails with a fixed, human-readable message that is rendered to the
visitor as-is. Fields are checked in declaration order and only the first
failure is reported.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from membership.errors import ValidationError


MAX_FIELD_LENGTH = 20
MIN_TLD_LENGTH = 2
_ALNUM = re.compile(r"[A-Za-z0-9]+")


def _present(field: str, value: Optional[str]) -> str:
    if value is None:
        raise ValueError(f'"{field}" is required')
    if value == "":
        raise ValueError(f'"{field}" is not allowed to be empty')
    return value


def _max_length(field: str, value: str) -> str:
    if len(value) > MAX_FIELD_LENGTH:
        raise ValueError(
            f'"{field}" length must be less than or equal to {MAX_FIELD_LENGTH} characters long'
        )
    return value


def _email(field: str, value: str) -> str:
    message = f'"{field}" must be a valid email'
    try:
        result = validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError(message)
    # Single-letter top-level domains are not delegated.
    if len(result.ascii_domain.rsplit(".", 1)[-1]) < MIN_TLD_LENGTH:
        raise ValueError(message)
    return value


class _Form(BaseModel):
    # Run validators on missing fields too, so "is required" comes from the same rule chain.
    model_config = ConfigDict(validate_default=True, extra="ignore")


class SignupForm(_Form):
    name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> str:
        v = _present("name", v)
        if not _ALNUM.fullmatch(v):
            raise ValueError('"name" must only contain alpha-numeric characters')
        return _max_length("name", v)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: Optional[str]) -> str:
        return _email("username", _present("username", v))

    @field_validator("password")
    @classmethod
    def check_password(cls, v: Optional[str]) -> str:
        return _max_length("password", _present("password", v))


class LoginForm(_Form):
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("username")
    @classmethod
    def check_username(cls, v: Optional[str]) -> str:
        return _email("username", _present("username", v))

    @field_validator("password")
    @classmethod
    def check_password(cls, v: Optional[str]) -> str:
        return _max_length("password", _present("password", v))


def first_error_message(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    err = errors[0]
    ctx_error = (err.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    loc = err.get("loc") or ("value",)
    if err.get("type") == "string_type":
        return f'"{loc[0]}" must be a string'
    return str(err.get("msg") or "Invalid input")


def validate_signup(data: Mapping[str, Any]) -> SignupForm:
    try:
        return SignupForm.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(first_error_message(e)) from None


def validate_login(data: Mapping[str, Any]) -> LoginForm:
    try:
        return LoginForm.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(first_error_message(e)) from None
