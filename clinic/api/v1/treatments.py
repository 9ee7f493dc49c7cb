from fastapi import APIRouter, Depends
from typing import List

from ...api.deps import get_current_user
from ...services import treatment_catalog
from ...schemas.treatment import Treatment, TreatmentCategory, TreatmentList
from ...models.user import User

router = APIRouter(prefix="/treatments", tags=["Treatments"])


@router.get("", response_model=TreatmentList)
async def list_treatments(current_user: User = Depends(get_current_user)):
    treatments = treatment_catalog.list_treatments()
    return TreatmentList(count=len(treatments), treatments=treatments)


@router.get("/categories", response_model=List[TreatmentCategory])
async def list_categories():
    return treatment_catalog.list_categories()


@router.get("/category/{category}", response_model=TreatmentList)
async def treatments_by_category(category: str):
    treatments = treatment_catalog.treatments_in_category(category)
    return TreatmentList(count=len(treatments), category=category, treatments=treatments)


@router.get("/{treatment_id}", response_model=Treatment)
async def get_treatment(treatment_id: int, current_user: User = Depends(get_current_user)):
    return treatment_catalog.get_treatment(treatment_id)
