from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from app.schemas.common import CamelModel, normalize_email_or_error

Role = Literal["user", "guide", "lead-guide", "admin"]


class _PasswordPair(CamelModel):
    password: str = Field(min_length=8)
    password_confirm: str

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class SignupIn(_PasswordPair):
    name: str = Field(min_length=1)
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return normalize_email_or_error(value)


class LoginIn(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordIn(CamelModel):
    email: str


class ResetPasswordIn(_PasswordPair):
    pass


class UpdatePasswordIn(_PasswordPair):
    password_current: str


class UpdateMeIn(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    # Present only to reject password changes on this route.
    password: Optional[str] = None
    password_confirm: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return None if value is None else normalize_email_or_error(value)


class UserAdminUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    role: Optional[Role] = None
    photo: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def _email(cls, value):
        return None if value is None else normalize_email_or_error(value)
