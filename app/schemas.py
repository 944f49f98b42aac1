"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from models.boards import BoardType


class AutomationType(str, Enum):
    """Kinds of automation rules an operator can define."""

    time_based = "time-based"
    time_length_based = "time-length-based"
    volume_based = "volume-based"
    threshold_based = "threshold-based"


class Automation(BaseModel):
    """Stored automation document; extra parameters depend on type and board."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    board: BoardType = Field(..., alias="boardType")
    name: str = ""
    type: AutomationType
    enabled: bool = True
    action: str
    repeat: str = "none"


class AutomationPayload(BaseModel):
    """Form data used to create or replace an automation."""

    board: BoardType = Field(..., alias="boardType")
    name: Optional[str] = None
    type: AutomationType = AutomationType.time_based
    action: str
    enabled: Optional[bool] = None
    repeat_schedule: Optional[str] = None
    date_time: Optional[str] = None
    time_length: Optional[Union[int, str]] = None
    time_unit: Optional[str] = None
    sensor_field: Optional[str] = None
    operator: Optional[str] = None
    threshold_value: Optional[Union[float, str]] = None
    volume_ml: Optional[Union[float, str]] = None
    instance_number: Optional[Union[int, str]] = None

    model_config = ConfigDict(populate_by_name=True)


class AutomationEnabledUpdate(BaseModel):
    enabled: bool


class AutomationCreated(BaseModel):
    id: str = Field(..., description="Identifier assigned by the automation store.")


class ReadingOut(BaseModel):
    """A board reading as stored, flattened into one object."""

    id: str
    board: BoardType
    timestamp: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class LatestStateResponse(BaseModel):
    """Composite latest values across all boards."""

    values: Dict[str, Union[bool, str]]
    timestamp: Optional[datetime] = None


class ReadingWriteRequest(BaseModel):
    """Field updates plus the sensors the caller may change."""

    updates: Dict[str, Any] = Field(..., description="Field key to requested value.")
    active_sensors: Optional[List[str]] = Field(
        default=None,
        description="Active sensor names; defaults to the instance's saved selection.",
    )
    instance: str = "1"


class BoardWriteResultOut(BaseModel):
    board: BoardType
    document: Dict[str, Any]
    reading_id: Optional[str] = None
    error: Optional[str] = None


class WriteReportResponse(BaseModel):
    results: List[BoardWriteResultOut] = Field(default_factory=list)


class LogEntryOut(BaseModel):
    id: int = Field(..., ge=1)
    board: BoardType
    time: datetime
    time_display: str
    action: str


class LogPageResponse(BaseModel):
    entries: List[LogEntryOut] = Field(default_factory=list)
    page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


class ExportedLogEntry(BaseModel):
    id: int
    time: str
    action: str


class SeriesOut(BaseModel):
    sensor: str
    field: str
    board: BoardType
    values: List[Optional[float]]


class SeriesResponse(BaseModel):
    timeline: List[datetime] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)
    series: List[SeriesOut] = Field(default_factory=list)


class SensorAddRequest(BaseModel):
    sensor: str


class SensorSelectionResponse(BaseModel):
    instance: str
    sensors: List[str] = Field(default_factory=list)
