"""Payloads pushed by Zoho workflow rules. Field names follow Zoho API names."""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_id(v: Union[str, int]) -> str:
    v = str(v).strip()
    if not v:
        raise ValueError("id is required")
    return v


class ProjectWebhook(BaseModel):
    """Partial Deal record; absent fields keep their stored values."""
    model_config = ConfigDict(extra="allow")

    id: str
    Deal_Name: Optional[str] = None
    Account_Name: Optional[Union[str, dict]] = None
    Stage: Optional[str] = None
    Project_Start_Date: Optional[str] = None
    Closing_Date: Optional[str] = None
    Shipping_Street: Optional[str] = None
    Owner: Optional[Union[str, dict]] = None
    Supplier_Color: Optional[str] = None
    Trim_Coil_Color: Optional[str] = None
    Shingle_Accessory_Color: Optional[str] = None
    Gutter_Types: Optional[str] = None
    Siding_Style: Optional[str] = None
    Work_Order_Link: Optional[str] = None

    coerce_id = field_validator("id", mode="before")(_coerce_id)


class AssignmentWebhook(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    portal_user_id: str = Field(..., alias="portalUserId")
    deal_id: str = Field(..., alias="dealId")
    action: Literal["add", "remove"] = "add"

    coerce_ids = field_validator("portal_user_id", "deal_id", mode="before")(_coerce_id)


class UserWebhook(BaseModel):
    id: str
    Email: str

    coerce_id = field_validator("id", mode="before")(_coerce_id)


class PainterWebhook(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = Field(..., alias="Name", min_length=1)
    email: Optional[str] = Field(None, alias="Email")
    phone: Optional[str] = Field(None, alias="Phone")
    active: bool = Field(True, alias="Active")

    coerce_id = field_validator("id", mode="before")(_coerce_id)
