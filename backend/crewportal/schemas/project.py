from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectResponse(BaseModel):
    """Project as shown in the job picker."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    customer: str = ""
    status: str = ""
    date: str = ""
    address: str = ""
    sales_rep: str = Field("", alias="salesRep")
    supplier_color: str = Field("", alias="supplierColor")
    trim_color: str = Field("", alias="trimColor")
    accessory_color: str = Field("", alias="accessoryColor")
    gutter_type: str = Field("", alias="gutterType")
    siding_style: str = Field("", alias="sidingStyle")
    work_order_link: str = Field("", alias="workOrderLink")
    updated_at: Optional[str] = Field(None, alias="updatedAt")


class PainterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    active: bool = True
