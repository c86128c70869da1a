from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContractStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    EXPIRED = "expired"


class ContractData(BaseModel):
    """创建 / 更新合同时提交的字段"""
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    description: str
    expiry_date: date
    status: ContractStatus = ContractStatus.PENDING
    parties_involved: List[str] = Field(default_factory=list)
    pdf_url: Optional[str] = None


class Contract(ContractData):
    id: str
    created_at: datetime
    updated_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)
