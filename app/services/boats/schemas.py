from datetime import datetime, date
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.db.models.boat import (
    SailboatCategory,
    EquipmentCategory,
    EquipmentStatus,
    MaintenanceCategory,
    MaintenancePriority,
    MaintenanceStatus,
)


class BoatCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: SailboatCategory | None = None
    make_model: str | None = None
    capacity: int | None = Field(default=None, ge=1)
    home_port: str | None = None
    country_flag: str | None = None
    loa_m: float | None = Field(default=None, gt=0)
    beam_m: float | None = Field(default=None, gt=0)
    max_draft_m: float | None = Field(default=None, gt=0)
    displcmt_m: float | None = Field(default=None, gt=0)
    average_speed_knots: float | None = Field(default=None, gt=0)
    link_to_specs: str | None = None
    characteristics: str | None = None
    capabilities: str | None = None
    accommodations: str | None = None
    images: list[str] = []

    @field_validator('country_flag')
    @classmethod
    def validate_country_flag(cls, v):
        """ISO 3166-1 alpha-2 code, e.g. FI"""
        if v is None or v == '':
            return None
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError('country_flag must be a 2-letter ISO country code')
        return v


class BoatUpdateRequest(BoatCreateRequest):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    images: list[str] | None = None


class BoatResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    type: SailboatCategory | None = None
    make_model: str | None = None
    capacity: int | None = None
    home_port: str | None = None
    country_flag: str | None = None
    loa_m: float | None = None
    beam_m: float | None = None
    max_draft_m: float | None = None
    displcmt_m: float | None = None
    average_speed_knots: float | None = None
    link_to_specs: str | None = None
    characteristics: str | None = None
    capabilities: str | None = None
    accommodations: str | None = None
    images: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class EquipmentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: EquipmentCategory
    parent_id: int | None = None
    subcategory: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    year_installed: int | None = Field(default=None, ge=1900, le=2100)
    specs: dict[str, Any] = {}
    notes: str | None = None
    images: list[str] = []
    status: EquipmentStatus = EquipmentStatus.ACTIVE
    quantity: int = Field(default=1, ge=0)


class EquipmentUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: EquipmentCategory | None = None
    parent_id: int | None = None
    subcategory: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    year_installed: int | None = Field(default=None, ge=1900, le=2100)
    specs: dict[str, Any] | None = None
    notes: str | None = None
    images: list[str] | None = None
    status: EquipmentStatus | None = None
    quantity: int | None = Field(default=None, ge=0)


class EquipmentResponse(BaseModel):
    id: int
    boat_id: int
    parent_id: int | None = None
    name: str
    category: EquipmentCategory
    subcategory: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    year_installed: int | None = None
    specs: dict[str, Any] = {}
    notes: str | None = None
    images: list[str] = []
    status: EquipmentStatus
    quantity: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class EquipmentTreeNode(EquipmentResponse):
    children: list["EquipmentTreeNode"] = []


class InventoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: str = "general"
    equipment_id: int | None = None
    quantity: int = Field(default=0, ge=0)
    min_quantity: int = Field(default=0, ge=0)
    unit: str | None = None
    location: str | None = None
    supplier: str | None = None
    part_number: str | None = None
    cost: float | None = Field(default=None, ge=0)
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    purchase_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None


class InventoryUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: str | None = None
    equipment_id: int | None = None
    quantity: int | None = Field(default=None, ge=0)
    min_quantity: int | None = Field(default=None, ge=0)
    unit: str | None = None
    location: str | None = None
    supplier: str | None = None
    part_number: str | None = None
    cost: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    purchase_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None


class InventoryDeductRequest(BaseModel):
    quantity: int = Field(gt=0)


class InventoryResponse(BaseModel):
    id: int
    boat_id: int
    equipment_id: int | None = None
    name: str
    category: str
    quantity: int
    min_quantity: int
    unit: str | None = None
    location: str | None = None
    supplier: str | None = None
    part_number: str | None = None
    cost: float | None = None
    currency: str
    purchase_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None
    is_low_stock: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class Recurrence(BaseModel):
    """Time-based recurrence creates the next task on completion; usage-based is informational"""
    type: Literal["time", "usage"]
    interval_days: int | None = Field(default=None, ge=1)
    engine_hours: int | None = Field(default=None, ge=1)

    @model_validator(mode='after')
    def validate_interval(self):
        if self.type == "time" and self.interval_days is None:
            raise ValueError('interval_days is required for time-based recurrence')
        if self.type == "usage" and self.engine_hours is None:
            raise ValueError('engine_hours is required for usage-based recurrence')
        return self


class PartNeeded(BaseModel):
    inventory_id: int
    quantity: int = Field(default=1, gt=0)


class MaintenanceTaskCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    category: MaintenanceCategory
    equipment_id: int | None = None
    description: str | None = None
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    status: MaintenanceStatus = MaintenanceStatus.PENDING
    is_template: bool = False
    recurrence: Recurrence | None = None
    due_date: date | None = None
    assigned_to: str | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)
    instructions: str | None = None
    parts_needed: list[PartNeeded] = []
    notes: str | None = None
    images_before: list[str] = []


class MaintenanceTaskUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    category: MaintenanceCategory | None = None
    equipment_id: int | None = None
    description: str | None = None
    priority: MaintenancePriority | None = None
    status: MaintenanceStatus | None = None
    recurrence: Recurrence | None = None
    due_date: date | None = None
    assigned_to: str | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)
    instructions: str | None = None
    parts_needed: list[PartNeeded] | None = None
    notes: str | None = None
    images_before: list[str] | None = None
    images_after: list[str] | None = None


class MaintenanceFromTemplateRequest(BaseModel):
    due_date: date | None = None
    assigned_to: str | None = None
    notes: str | None = None


class MaintenanceCompleteRequest(BaseModel):
    actual_hours: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)
    notes: str | None = None
    images_after: list[str] | None = None


class MaintenanceTaskResponse(BaseModel):
    id: int
    boat_id: int
    equipment_id: int | None = None
    template_id: int | None = None
    is_template: bool
    title: str
    description: str | None = None
    category: MaintenanceCategory
    priority: MaintenancePriority
    status: MaintenanceStatus
    recurrence: dict[str, Any] | None = None
    due_date: date | None = None
    assigned_to: str | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    estimated_cost: float | None = None
    actual_cost: float | None = None
    instructions: str | None = None
    parts_needed: list[PartNeeded] = []
    notes: str | None = None
    images_before: list[str] = []
    images_after: list[str] = []
    completed_at: datetime | None = None
    completed_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class MaintenanceCompleteResponse(BaseModel):
    task: MaintenanceTaskResponse
    next_task: MaintenanceTaskResponse | None = None
    parts_deducted: int = 0
