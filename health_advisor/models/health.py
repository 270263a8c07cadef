"""Health record models read by the health context assembler."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class HealthDataType(StrEnum):
    """Kinds of health records a user can log."""

    MEAL = "meal"
    LAB_RESULT = "labResult"
    SYMPTOM = "symptom"


class MealType(StrEnum):
    """Meal slot of a logged meal."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class SymptomSeverity(StrEnum):
    """Self-reported symptom severity."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


@dataclass
class MealData:
    """Meal-specific payload."""

    description: str
    meal_type: MealType


@dataclass
class LabResultData:
    """Lab-result payload; results are free-form key/value pairs."""

    test_type: str
    results: dict[str, Any] = field(default_factory=dict)
    notes: str = ""


@dataclass
class SymptomData:
    """Symptom payload. Duration is free text such as "2 days"."""

    description: str
    severity: SymptomSeverity
    duration: str = ""


HealthRecordData = MealData | LabResultData | SymptomData


@dataclass
class HealthRecord:
    """A single logged health record."""

    id: str
    user_id: str
    type: HealthDataType
    data: HealthRecordData
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class HealthContextSnapshot:
    """Recent records of each type for one user, newest first.

    Built fresh for every chat turn and never cached.
    """

    meals: list[HealthRecord] = field(default_factory=list)
    lab_results: list[HealthRecord] = field(default_factory=list)
    symptoms: list[HealthRecord] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.meals or self.lab_results or self.symptoms)
