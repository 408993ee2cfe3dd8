from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, ValidationInfo
from datetime import datetime
import re
from typing import List, Optional

class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    concept: str = ""
    quantity: float
    price: float
    # Percentage; a missing rate counts as 0
    tax: Optional[float] = Field(None, validation_alias=AliasChoices("tax", "taxValue"))
    tax_type: Optional[str] = Field(None, alias="taxType")

    @field_validator('quantity', 'price', 'tax', mode='before')
    @classmethod
    def validate_numeric(cls, v, info: ValidationInfo):
        # Strict numeric check for form and CLI strings
        if isinstance(v, str):
            if not re.match(r'^-?\d+(\.\d+)?$', v.strip()):
                raise ValueError(f"{info.field_name} must be strictly numeric")
        return v

    @property
    def line_subtotal(self) -> float:
        return self.quantity * self.price


class Invoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    number: str = ""
    date: str
    recipient_id: Optional[str] = Field(None, alias="recipientId")
    account_id: Optional[str] = Field(None, alias="accountId")
    apply_retention: bool = Field(True, alias="applyRetention")
    items: List[LineItem]

    @field_validator('number', mode='before')
    @classmethod
    def coerce_number(cls, v):
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator('date')
    @classmethod
    def validate_date_format(cls, v):
        # Dates stay ISO strings; only the shape is enforced
        try:
            datetime.strptime(v, '%Y-%m-%d')
        except ValueError:
            raise ValueError("Date must be in YYYY-MM-DD format")
        return v


class InvoiceTotals(BaseModel):
    subtotal: float = 0.0
    tax: float = 0.0
    retention: float = 0.0
    total: float = 0.0
