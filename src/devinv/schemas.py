"""Value types exchanged between the store and the interactive layer."""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEVICE_TYPES = ("Generic", "Sensor", "Actuator", "PLC")

CALIBRATION_MIN = -100.0
CALIBRATION_MAX = 100.0

_OCTET = r"(?:[0-1]?[0-9]?[0-9]|2[0-4][0-9]|25[0-5])"
IPV4_PATTERN = re.compile(rf"^{_OCTET}\.{_OCTET}\.{_OCTET}\.{_OCTET}$")
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


class DeviceRecord(BaseModel):
    """One inventory entry as stored; ``id == -1`` means not yet persisted."""

    model_config = ConfigDict(from_attributes=True)

    id: int = -1
    user_id: int = -1
    name: str = "New Device"
    type: str = "Generic"
    ip_address: str = "192.168.1.1"
    calibration: float = 0.0

    # the devices table allows NULLs; rows written outside this package may carry them
    @field_validator("name", "type", "ip_address", mode="before")
    @classmethod
    def null_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("calibration", mode="before")
    @classmethod
    def null_calibration(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    @field_validator("user_id", mode="before")
    @classmethod
    def null_owner(cls, v: Any) -> Any:
        return -1 if v is None else v


class DeviceForm(BaseModel):
    """Device fields as entered by a user, validated before any store access."""

    name: str
    type: str = "Generic"
    ip_address: str
    calibration: float = Field(0.0, ge=CALIBRATION_MIN, le=CALIBRATION_MAX)

    @field_validator("name", "type")
    @classmethod
    def single_line(cls, v: str) -> str:
        if CONTROL_CHARS.search(v):
            raise ValueError("line breaks and control characters are not allowed")
        return v

    @field_validator("name", "ip_address")
    @classmethod
    def required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name and IP address are required")
        return v

    @field_validator("type")
    @classmethod
    def default_type(cls, v: str) -> str:
        return v.strip() or "Generic"

    @field_validator("ip_address")
    @classmethod
    def dotted_quad(cls, v: str) -> str:
        if not IPV4_PATTERN.match(v):
            raise ValueError(f"{v!r} is not an IPv4 address")
        return v

    @field_validator("calibration")
    @classmethod
    def two_decimals(cls, v: float) -> float:
        return round(v, 2)

    @classmethod
    def from_record(cls, record: DeviceRecord) -> "DeviceForm":
        return cls(
            name=record.name,
            type=record.type,
            ip_address=record.ip_address,
            calibration=record.calibration,
        )

    def to_record(self, user_id: int, device_id: int = -1) -> DeviceRecord:
        return DeviceRecord(
            id=device_id,
            user_id=user_id,
            name=self.name,
            type=self.type,
            ip_address=self.ip_address,
            calibration=self.calibration,
        )


class UserCreate(BaseModel):
    """Fields for registering a new user."""

    username: str
    password: str
    role: str = "user"

    @field_validator("username", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("all fields are required")
        return v

    @field_validator("username")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("role")
    @classmethod
    def default_role(cls, v: str) -> str:
        return v.strip() or "user"


class AuditEntry(BaseModel):
    """Serialized audit log row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: datetime
    category: Optional[str] = None
    message: Optional[str] = None
