from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ReportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    indicative_buying: Decimal = Field(gt=0, max_digits=18, decimal_places=6)
    indicative_selling: Decimal = Field(gt=0, max_digits=18, decimal_places=6)
    as_of_date: date | None = None
