import re

from pydantic import BaseModel, ValidationError, field_validator

from errors import ValidationFailed
from models import TaskStatus

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


# Schema for a new user registration
class UserCreate(BaseModel):
    name: str
    email: str
    password: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name must not be empty")
        return value

    @field_validator("email")
    @classmethod
    def email_format(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return value


# Schema for a user login. No password rules here: a bad password is just bad credentials
class UserLogin(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def email_lower(cls, value: str) -> str:
        return value.strip().lower()


# Claims carried by the JWT access token
class TokenPayload(BaseModel):
    sub: str

    @property
    def user_id(self) -> int:
        return int(self.sub)


class TaskCreate(BaseModel):
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title must not be empty")
        return value


# Partial update: only the fields that were explicitly set are applied
class TaskUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Title must not be empty")
        return value

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        # status and title columns are NOT NULL, so an explicit null means "leave as is"
        for key in ("title", "status"):
            if key in data and data[key] is None:
                del data[key]
        return data


def validate_input(schema: type[BaseModel], **data) -> BaseModel:
    """Build ``schema`` from resolver arguments, raising ValidationFailed on bad input."""
    try:
        return schema(**data)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        message = errors[0]["message"] if errors else None
        raise ValidationFailed(message, errors=errors) from exc
