from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItem(CamelModel):
    sl_no: int
    description: str = Field(min_length=1)
    make_item: str = Field(min_length=1)
    model: str = Field(min_length=1)
    serial_no: str = Field(min_length=1)
    qty: int


class GatePass(CamelModel):
    id: str = Field(min_length=1)
    gatepass_no: str = Field(min_length=1)
    date: datetime
    destination: str = Field(min_length=1)
    destination_id: Optional[str] = None
    carried_by: str = Field(min_length=1)
    through: str = Field(min_length=1)
    mobile_no: str = Field(min_length=1)
    created_by: Optional[str] = None
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    is_enable: Optional[int] = None
    returnable: Union[bool, int, str, None] = None
    logo_data_uri: Optional[str] = None
    items: List[LineItem] = Field(min_length=1)


class NormalizedLineItem(CamelModel):
    sl_no: Union[int, float] = 0
    description: str = ""
    make_item: str = ""
    model: str = ""
    serial_no: str = ""
    qty: Union[int, float] = 0


class NormalizedGatePass(CamelModel):
    """Canonical view of a gate pass; the input to fingerprinting and rendering."""

    gatepass_no: str = ""
    date: Optional[str] = None
    destination: str = ""
    carried_by: str = ""
    through: str = ""
    mobile_no: str = ""
    created_by: str = ""
    modified_by: str = ""
    modified_at: Optional[str] = None
    returnable: bool = False
    items: List[NormalizedLineItem] = Field(default_factory=list)


class WriteResult(CamelModel):
    success: bool
    message: str
    gate_pass_id: Optional[str] = None


class Destination(CamelModel):
    destination_name: str = Field(min_length=1)
    destination_code: str = Field(min_length=1)


class DestinationWriteResult(CamelModel):
    success: bool
    message: str
    destination_id: Optional[str] = None


class DataResult(CamelModel):
    """Read envelope matching the write results: ``{"success": true, "data": ...}``."""

    success: bool = True
    data: Any = None
