"""Schemas for timesheet submission and history."""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from crewportal.constants.sundry_items import SUNDRY_ITEMS, resolve_sundry_item
from crewportal.utils.timeparse import compute_hours, normalize_time


class CrewRowIn(BaseModel):
    """One painter's times as submitted by the foreman."""
    model_config = ConfigDict(populate_by_name=True)

    painter_id: str = Field(..., alias="painterId", min_length=1)
    painter_name: str = Field("", alias="painterName")
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")
    lunch_start: Optional[str] = Field("", alias="lunchStart")
    lunch_end: Optional[str] = Field("", alias="lunchEnd")

    @field_validator("painter_id")
    @classmethod
    def strip_painter_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("painterId is required")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_required_time(cls, v: str) -> str:
        normalized = normalize_time(v)
        if not normalized:
            raise ValueError("time is required")
        return normalized

    @field_validator("lunch_start", "lunch_end")
    @classmethod
    def validate_optional_time(cls, v: Optional[str]) -> str:
        return normalize_time(v)

    @property
    def total_hours(self) -> float:
        return compute_hours(self.start_time, self.end_time, self.lunch_start, self.lunch_end)


class SundryItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sundry_item: str = Field(..., alias="sundryItem")
    quantity: int = Field(0, ge=0)

    @field_validator("sundry_item")
    @classmethod
    def validate_known_item(cls, v: str) -> str:
        item = resolve_sundry_item(v)
        if item is None:
            raise ValueError(f"Unknown sundry item: {v}")
        return item.column


class TimeEntryCreate(BaseModel):
    """Timesheet submission payload."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId", min_length=1)
    job_name: str = Field(..., alias="jobName")
    entry_date: date = Field(..., alias="date")
    notes: Optional[str] = ""
    change_order: Optional[str] = Field("", alias="changeOrder")
    painters: List[CrewRowIn] = Field(..., min_length=1)
    sundry_items: List[SundryItemIn] = Field(default_factory=list, alias="sundryItems")

    @field_validator("notes", "change_order")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        return v or ""

    @model_validator(mode="after")
    def reject_duplicate_painters(self):
        seen = set()
        for row in self.painters:
            if row.painter_id in seen:
                raise ValueError(f"Duplicate painterId: {row.painter_id}")
            seen.add(row.painter_id)
        return self

    @property
    def total_crew_hours(self) -> float:
        return round(sum(row.total_hours for row in self.painters), 2)

    def sundry_quantities(self) -> Dict[str, int]:
        """Quantities keyed by time_entries column; repeated items are summed."""
        quantities: Dict[str, int] = {}
        for entry in self.sundry_items:
            quantities[entry.sundry_item] = quantities.get(entry.sundry_item, 0) + entry.quantity
        return quantities


class CrewRowResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    painter_id: str = Field(..., alias="painterId")
    painter_name: str = Field(..., alias="painterName")
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")
    lunch_start: str = Field("", alias="lunchStart")
    lunch_end: str = Field("", alias="lunchEnd")
    total_hours: float = Field(..., alias="totalHours")
    zoho_junction_id: Optional[str] = Field(None, alias="zohoJunctionId")


class TimesheetResponse(BaseModel):
    """Timesheet summary returned to the portal."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str = Field(..., alias="userId")
    job_id: str = Field(..., alias="jobId")
    job_name: str = Field(..., alias="jobName")
    date: str
    notes: str = ""
    change_order: str = Field("", alias="changeOrder")
    total_crew_hours: float = Field(..., alias="totalCrewHours")
    synced: bool
    pending_sync: bool = Field(..., alias="pendingSync")
    zoho_parent_id: Optional[str] = Field(None, alias="zohoParentId")
    painters: List[CrewRowResponse] = []
    sundry_items: Dict[str, int] = Field(default_factory=dict, alias="sundryItems")

    @classmethod
    def from_model(cls, timesheet) -> "TimesheetResponse":
        quantities = timesheet.sundry_quantities()
        return cls(
            id=timesheet.id,
            user_id=timesheet.user_id,
            job_id=timesheet.job_id,
            job_name=timesheet.job_name,
            date=timesheet.entry_date.isoformat(),
            notes=timesheet.notes or "",
            change_order=timesheet.change_order or "",
            total_crew_hours=timesheet.total_crew_hours,
            synced=timesheet.synced,
            pending_sync=not timesheet.synced,
            zoho_parent_id=timesheet.zoho_parent_id,
            painters=[CrewRowResponse.model_validate(row) for row in timesheet.crew_rows],
            sundry_items={
                item.key: quantities[item.column]
                for item in SUNDRY_ITEMS
                if quantities[item.column] > 0
            },
        )
