"""Pydantic schemas used across the backend API."""
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .enums import LeaveStatus


class RecordWrite(BaseModel):
    """Body for creating or renaming a record."""

    name: str = ""

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()


class RecordRead(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    """Fields accepted when an account is created."""

    email: EmailStr
    username: str = Field(min_length=1, max_length=150)
    role: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1)
    employee_number: str | None = None
    f_name: str = Field(min_length=1, max_length=100)
    l_name: str = Field(min_length=1, max_length=100)


class UserRead(BaseModel):
    """Public representation of a user. Never carries the password."""

    id: int
    email: str
    username: str
    role: str
    employee_number: str | None = None
    f_name: str
    l_name: str
    p_pic: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    username: str | None = None
    password: str | None = None


class LoginUser(BaseModel):
    """Subset of the user returned after a successful login."""

    f_name: str
    p_pic: str | None = None
    username: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    message: str = "Login successful"
    user: LoginUser


class MessageResponse(BaseModel):
    message: str


class LeaveRequestCreate(BaseModel):
    """Body for filing a leave request."""

    employee_id: int = Field(gt=0)
    leave_type: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_period(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class LeaveRequestCreated(BaseModel):
    success: bool = True
    id: int


class LeaveRequestRead(BaseModel):
    id: int
    employee_id: int
    leave_type: str
    start_date: date
    end_date: date
    status: LeaveStatus
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveStatusUpdate(BaseModel):
    # Checked by the handler so an unknown value reads as "Invalid status value".
    status: str | None = None


class LeaveStatusRead(BaseModel):
    id: int
    status: LeaveStatus


class NotificationRead(BaseModel):
    """A notification joined with its user and leave request."""

    id: int
    user_id: int
    leave_request_id: int
    status: LeaveStatus
    created_at: datetime
    f_name: str
    l_name: str
    username: str
    email: str
    role: str
    p_pic: str | None = None
    leave_type: str
    start_date: date
    end_date: date

    model_config = ConfigDict(from_attributes=True)
