# sheet_gateway/schemas.py
from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

BATCH_TRANSLATE = "translate_batch"


class _CamelModel(BaseModel):
    # sheet cells arrive as numbers as often as strings
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)


# ---------------------------- Sheet Context ----------------------------
class SheetHeader(_CamelModel):
    column_letter: str
    label: str = ""


class ActiveRange(_CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True, extra="allow"
    )

    address: Optional[str] = None


class SheetContext(_CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True, extra="allow"
    )

    active_range: Optional[ActiveRange] = None
    sheet_name: Optional[str] = None
    last_row: Optional[int] = None
    last_column: Optional[int] = None
    headers: List[SheetHeader] = Field(default_factory=list)
    operation: Optional[str] = None

    # batch translation only
    texts: List[Optional[str]] = Field(default_factory=list)
    target_language: Optional[str] = None
    source_language: Optional[str] = None

    @field_validator("active_range", mode="before")
    @classmethod
    def _address_string(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"address": v}
        return v

    @property
    def is_batch_translation(self) -> bool:
        return self.operation == BATCH_TRANSLATE

    @property
    def address(self) -> Optional[str]:
        return self.active_range.address if self.active_range else None


# ---------------------------- Command Payload ----------------------------
ClientType = Literal["excel", "google-sheets"]


class CommandPayload(_CamelModel):
    command: Optional[str] = None
    sheet_context: Optional[SheetContext] = None
    model: Optional[str] = None
    auth_key: Optional[str] = None
    auth_email: Optional[str] = None
    client_type: ClientType = "excel"


# ---------------------------- Operation Descriptors ----------------------------
class OperationDescriptor(BaseModel):
    operation: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class OperationBatch(BaseModel):
    operations: List[OperationDescriptor]


Interpretation = Union[OperationDescriptor, OperationBatch]


# ---------------------------- Auth Keys ----------------------------
class AuthKeyRecord(_CamelModel):
    key: str
    company: str
    memo: str = ""
    created_at: str
    created_by: str = "admin"
    is_active: bool = True
    usage_count: int = 0
    last_used: Optional[str] = None


class CreateKeyPayload(BaseModel):
    company: Optional[str] = None
    memo: Optional[str] = None


class DeleteKeyPayload(BaseModel):
    key: Optional[str] = None


# ---------------------------- Activity Logs ----------------------------
class LogEntry(_CamelModel):
    auth_key: str
    email: str = "anonymous"
    company: str
    timestamp: str
    local_time: str = ""
    client_ip: str = Field(default="unknown", alias="clientIP")
    user_agent: str = ""
    os: str = "Unknown"
    browser: str = "Unknown"
    origin: str = ""
    model: str = ""
    command: str = ""
    action: str = "command"
    sheet_operation: str = ""
    is_free_user: bool = False
