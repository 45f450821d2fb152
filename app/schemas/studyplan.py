from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.plan import StudyPlan
from app.services.catalog import HOURS_MAX, HOURS_MIN, check_difficulties


class SessionRequest(BaseModel):
    # Custom auth token, only used when IDENTITY_MODE=token
    token: Optional[str] = None


class PreferencesRequest(BaseModel):
    hours: int = Field(ge=HOURS_MIN, le=HOURS_MAX)
    difficulties: Dict[str, int]

    @field_validator("difficulties")
    @classmethod
    def validate_difficulties(cls, value: Dict[str, int]) -> Dict[str, int]:
        return check_difficulties(value)


class ViewState(BaseModel):
    """Everything the single-page UI needs to render the current screen."""

    mode: str
    message: str = ""
    busy: bool = False
    user_id: str
    week: int
    weeks_until_exam: int
    is_seminar_day: bool
    today: Optional[str] = None
    hours: int
    difficulties: Dict[str, int]
    subjects: List[str]
    days: List[str]
    plan: Optional[StudyPlan] = None
    completed_count: int = 0
    week_complete: bool = False
