from typing import Dict, List
from pydantic import BaseModel, EmailStr, Field


class ContactMessage(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)


class ClinicInfo(BaseModel):
    name: str
    address: str
    phone: str
    email: str
    working_hours: Dict[str, str]
    services: List[str]
