"""Deal schemas"""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class DealCreate(BaseModel):
    title: str = Field(min_length=1)
    contact_id: int
    stage: str = Field(min_length=1)
    amount: Optional[int] = None
    description: Optional[str] = None

    @field_validator("contact_id", "amount", mode="before")
    @classmethod
    def clean_integer(cls, v: Any) -> Any:
        """Accept spreadsheet-style numbers such as " 1,200 " or "$1200"."""
        if isinstance(v, str):
            v = v.strip().lstrip("$").replace(",", "")
            if not v:
                return None
        return v

    @field_validator("description", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        str_strip_whitespace = True


class DealResponse(BaseModel):
    id: int
    title: str
    contact_id: int
    amount: Optional[int] = None
    stage: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
