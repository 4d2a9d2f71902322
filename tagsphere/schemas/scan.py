from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AlertType(str, Enum):
    parked_wrong = "parked_wrong"
    lights_on = "lights_on"
    emergency = "emergency"
    other = "other"


class AlertRequest(BaseModel):
    alert_type: AlertType = AlertType.other
    message: Optional[str] = Field(default=None, max_length=500)


class ScanResponse(BaseModel):
    vehicle_number: str
    vehicle_type: str
    vehicle_color: Optional[str] = None
    owner_name: str
    qr_code_id: str
    can_call: bool
    calls_enabled: bool
    can_alert: bool = True
    has_emergency_contact: bool


class CallResponse(BaseModel):
    success: bool = True
    phone: str
    masked_phone: str
    call_method: str


class EmergencyContactOut(BaseModel):
    name: Optional[str] = None
    masked_phone: str
    phone: str


class EmergencyContactResponse(BaseModel):
    success: bool = True
    emergency_contact: EmergencyContactOut
