from typing import List, Optional
from pydantic import BaseModel


class Treatment(BaseModel):
    id: int
    name: str
    category: str
    duration: str
    description: str
    price: int
    availability: str = "available"
    benefits: List[str] = []
    contraindications: List[str] = []


class TreatmentCategory(BaseModel):
    name: str
    description: str
    treatment_count: int


class TreatmentList(BaseModel):
    count: int
    category: Optional[str] = None
    treatments: List[Treatment]
