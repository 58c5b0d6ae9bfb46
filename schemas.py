from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class LedgerRecordIn(BaseModel):
    """A validated export row, ready to be stored under ``period``."""

    model_config = ConfigDict(frozen=True)

    record_date: date
    income_expense: str
    payment_method: str = ""
    category: str = Field(..., min_length=1)
    person: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)
    location: str = ""
    memo: str = ""
    period: str


class IngestResultOut(BaseModel):
    success: bool
    processed_count: int
    errors: list[str] = Field(default_factory=list)
    touched_periods: list[str] = Field(default_factory=list)
    deleted_counts: dict[str, int] = Field(default_factory=dict)
