import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from .common import clean_vehicle_number, clean_six_digits


class VehicleType(str, Enum):
    car = "car"
    bike = "bike"
    truck = "truck"
    auto = "auto"
    other = "other"


class VehicleRegister(BaseModel):
    vehicle_number: str
    qr_id: str
    activation_pin: str
    vehicle_type: VehicleType = VehicleType.car
    vehicle_color: Optional[str] = Field(default=None, max_length=50)

    @field_validator("vehicle_number")
    @classmethod
    def _number(cls, v: str) -> str:
        return clean_vehicle_number(v)

    @field_validator("qr_id")
    @classmethod
    def _qr_id(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if not v:
            raise ValueError("QR code ID is required")
        return v

    @field_validator("activation_pin")
    @classmethod
    def _pin(cls, v: str) -> str:
        return clean_six_digits(v, "PIN")


class VehicleUpdate(BaseModel):
    vehicle_type: Optional[VehicleType] = None
    vehicle_color: Optional[str] = Field(default=None, max_length=50)

    @field_validator("vehicle_color")
    @classmethod
    def _color(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class VehicleResponse(BaseModel):
    id: uuid.UUID
    vehicle_number: str
    qr_code_id: str
    vehicle_type: str
    vehicle_color: Optional[str] = None
    is_active: bool
    total_scans: int
    last_scanned_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    vehicles: List[VehicleResponse]


class ScanLogResponse(BaseModel):
    id: uuid.UUID
    qr_code_id: str
    action: str
    lookup_source: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    alert_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
