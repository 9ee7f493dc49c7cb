"""Static catalog of the treatments offered by the clinic."""
from typing import Dict, List

from ..core.exceptions import NotFound
from ..schemas.treatment import Treatment, TreatmentCategory

TREATMENTS: List[Treatment] = [
    Treatment(
        id=1,
        name="Panchakarma Detox",
        category="Detoxification",
        duration="21 days",
        description="Complete body detoxification through traditional Panchakarma methods",
        price=25000,
        benefits=["Consultation", "Medicines", "Diet Plan", "Follow-up"],
        contraindications=["Pregnancy", "Severe heart conditions"],
    ),
    Treatment(
        id=2,
        name="Herbal Consultation",
        category="Consultation",
        duration="1 hour",
        description="Personalized herbal medicine consultation",
        price=2000,
        benefits=["Pulse diagnosis", "Personalized medicine", "Lifestyle guidance"],
    ),
    Treatment(
        id=3,
        name="Stress Relief Therapy",
        category="Mental Health",
        duration="90 minutes",
        description="Specialized therapy for stress management and mental wellness",
        price=3500,
    ),
    Treatment(
        id=4,
        name="Skin & Hair Treatment",
        category="Beauty & Wellness",
        duration="60 minutes",
        description="Natural Ayurvedic treatment for skin and hair problems",
        price=2500,
    ),
    Treatment(
        id=5,
        name="Women's Health Package",
        category="Women's Health",
        duration="2 hours",
        description="Comprehensive women's health consultation and treatment",
        price=4000,
    ),
    Treatment(
        id=6,
        name="Diet & Nutrition Counseling",
        category="Nutrition",
        duration="45 minutes",
        description="Personalized diet planning based on Ayurvedic principles",
        price=1500,
    ),
    Treatment(
        id=7,
        name="Abhyanga Massage",
        category="Massage Therapy",
        duration="60 minutes",
        description="Traditional full-body oil massage for relaxation and healing",
        price=2000,
    ),
]

CATEGORY_DESCRIPTIONS: Dict[str, str] = {
    "Detoxification": "Body cleansing and purification treatments",
    "Consultation": "Personalized consultations with the clinic's physicians",
    "Mental Health": "Stress management and mental wellness therapies",
    "Beauty & Wellness": "Natural treatments for skin and hair care",
    "Women's Health": "Specialized treatments for women's health concerns",
    "Nutrition": "Diet and nutrition counseling based on Ayurvedic principles",
    "Massage Therapy": "Traditional oil massages for relaxation and healing",
}


def list_treatments() -> List[Treatment]:
    return list(TREATMENTS)


def list_categories() -> List[TreatmentCategory]:
    return [
        TreatmentCategory(
            name=name,
            description=description,
            treatment_count=sum(1 for t in TREATMENTS if t.category == name),
        )
        for name, description in CATEGORY_DESCRIPTIONS.items()
    ]


def treatments_in_category(category: str) -> List[Treatment]:
    """Case-insensitive; an unknown category simply has no treatments."""
    wanted = category.strip().lower()
    return [t for t in TREATMENTS if t.category.lower() == wanted]


def get_treatment(treatment_id: int) -> Treatment:
    for treatment in TREATMENTS:
        if treatment.id == treatment_id:
            return treatment
    raise NotFound("Treatment not found")
