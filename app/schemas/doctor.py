"""Doctor panel schemas."""
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, field_validator, model_validator

from app.utils.datetime_utils import DATE_FORMAT_MESSAGE, DATE_RE


def check_date_format(value: str) -> str:
    if not DATE_RE.match(value):
        raise ValueError(DATE_FORMAT_MESSAGE)
    return value


DateStr = Annotated[str, AfterValidator(check_date_format)]


class CompleteVisitRequest(BaseModel):
    visitGoal: str
    symptoms: Optional[str] = None
    diagnosisDescription: Optional[str] = None
    prescribedMedications: Optional[str] = None
    recommendations: Optional[str] = None
    proceduresPerformed: Optional[str] = None
    examResultCodes: Optional[List[str]] = None

    @field_validator("visitGoal")
    def goal_required(cls, v):
        if len(v) < 1:
            raise ValueError("Cel wizyty jest wymagany")
        return v


class DispositionDay(BaseModel):
    date: DateStr
    startHour: int
    endHour: int

    @field_validator("startHour", "endHour")
    def hour_range(cls, v):
        if not 0 <= v <= 23:
            raise ValueError("Godzina musi być z zakresu 0-23")
        return v

    @model_validator(mode="after")
    def end_after_start(self):
        if self.endHour <= self.startHour:
            raise ValueError("Godzina zakończenia musi być późniejsza niż rozpoczęcia")
        return self


class DispositionsRequest(BaseModel):
    """Bulk replacement of a doctor's availability for the listed dates."""
    model_config = ConfigDict(extra="forbid")

    periodStart: DateStr
    periodEnd: DateStr
    days: List[DispositionDay]

    @field_validator("days")
    def at_least_one(cls, v):
        if not v:
            raise ValueError("Wybierz przynajmniej jeden dzień")
        return v

    @model_validator(mode="after")
    def period_order(self):
        if self.periodEnd < self.periodStart:
            raise ValueError("Data zakończenia musi być późniejsza lub równa dacie rozpoczęcia")
        return self
