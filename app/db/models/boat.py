"""
Boat, equipment, inventory and maintenance models
Equipment forms a per-boat tree (parent_id); inventory and maintenance tasks can be linked to equipment
"""
from datetime import datetime, date
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Date, Enum as SqlEnum, Text, Float, ForeignKey, JSON, Boolean
from sqlalchemy.sql import func
from app.db.postgres import Base

if TYPE_CHECKING:
    from app.db.models.user import User
    from app.db.models.journey import Journey


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


class SailboatCategory(str, Enum):
    DAYSAILERS = "Daysailers"
    COASTAL_CRUISERS = "Coastal cruisers"
    TRADITIONAL_OFFSHORE = "Traditional offshore cruisers"
    PERFORMANCE_CRUISERS = "Performance cruisers"
    MULTIHULLS = "Multihulls"
    EXPEDITION = "Expedition sailboats"


class EquipmentCategory(str, Enum):
    ENGINE = "engine"
    RIGGING = "rigging"
    ELECTRICAL = "electrical"
    NAVIGATION = "navigation"
    SAFETY = "safety"
    PLUMBING = "plumbing"
    ANCHORING = "anchoring"
    HULL_DECK = "hull_deck"
    ELECTRONICS = "electronics"
    GALLEY = "galley"
    COMFORT = "comfort"
    DINGHY = "dinghy"


class EquipmentStatus(str, Enum):
    ACTIVE = "active"
    DECOMMISSIONED = "decommissioned"
    NEEDS_REPLACEMENT = "needs_replacement"


class MaintenanceCategory(str, Enum):
    ROUTINE = "routine"
    SEASONAL = "seasonal"
    REPAIR = "repair"
    INSPECTION = "inspection"
    SAFETY = "safety"


class MaintenancePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MaintenanceStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class Boat(Base):
    __tablename__ = "boats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[SailboatCategory | None] = mapped_column(
        SqlEnum(SailboatCategory, native_enum=False, length=40, values_callable=enum_values),
        nullable=True
    )
    make_model: Mapped[str | None] = mapped_column(String(200), nullable=True)  # e.g. "Bavaria 46"
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    home_port: Mapped[str | None] = mapped_column(String(200), nullable=True)
    country_flag: Mapped[str | None] = mapped_column(String(2), nullable=True)  # ISO 3166-1 alpha-2

    # Dimensions
    loa_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    beam_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_draft_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    displcmt_m: Mapped[float | None] = mapped_column(Float, nullable=True)  # kg
    average_speed_knots: Mapped[float | None] = mapped_column(Float, nullable=True)
    link_to_specs: Mapped[str | None] = mapped_column(String(500), nullable=True)

    characteristics: Mapped[str | None] = mapped_column(Text, nullable=True)
    capabilities: Mapped[str | None] = mapped_column(Text, nullable=True)
    accommodations: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    owner: Mapped["User"] = relationship("User", back_populates="boats")
    journeys: Mapped[list["Journey"]] = relationship("Journey", back_populates="boat", cascade="all, delete-orphan")
    equipment: Mapped[list["BoatEquipment"]] = relationship("BoatEquipment", back_populates="boat", cascade="all, delete-orphan")
    inventory: Mapped[list["BoatInventory"]] = relationship("BoatInventory", back_populates="boat", cascade="all, delete-orphan")
    maintenance_tasks: Mapped[list["BoatMaintenanceTask"]] = relationship(
        "BoatMaintenanceTask", back_populates="boat", cascade="all, delete-orphan"
    )


class BoatEquipment(Base):
    __tablename__ = "boat_equipment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    boat_id: Mapped[int] = mapped_column(Integer, ForeignKey("boats.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("boat_equipment.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[EquipmentCategory] = mapped_column(
        SqlEnum(EquipmentCategory, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        index=True
    )
    subcategory: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(200), nullable=True)
    model: Mapped[str | None] = mapped_column(String(200), nullable=True)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    year_installed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    specs: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[EquipmentStatus] = mapped_column(
        SqlEnum(EquipmentStatus, native_enum=False, length=20, values_callable=enum_values),
        default=EquipmentStatus.ACTIVE,
        nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    boat: Mapped["Boat"] = relationship("Boat", back_populates="equipment")


class BoatInventory(Base):
    __tablename__ = "boat_inventory"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    boat_id: Mapped[int] = mapped_column(Integer, ForeignKey("boats.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("boat_equipment.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="general", nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(30), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)  # where on board
    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)
    part_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    purchase_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    boat: Mapped["Boat"] = relationship("Boat", back_populates="inventory")

    @property
    def is_low_stock(self) -> bool:
        return (self.min_quantity or 0) > 0 and (self.quantity or 0) <= self.min_quantity


class BoatMaintenanceTask(Base):
    __tablename__ = "boat_maintenance_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    boat_id: Mapped[int] = mapped_column(Integer, ForeignKey("boats.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("boat_equipment.id", ondelete="SET NULL"), nullable=True)
    # Tasks created from a template (or as the next occurrence) point back to it
    template_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("boat_maintenance_tasks.id", ondelete="SET NULL"), nullable=True)
    is_template: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[MaintenanceCategory] = mapped_column(
        SqlEnum(MaintenanceCategory, native_enum=False, length=20, values_callable=enum_values),
        nullable=False
    )
    priority: Mapped[MaintenancePriority] = mapped_column(
        SqlEnum(MaintenancePriority, native_enum=False, length=20, values_callable=enum_values),
        default=MaintenancePriority.MEDIUM,
        nullable=False
    )
    status: Mapped[MaintenanceStatus] = mapped_column(
        SqlEnum(MaintenanceStatus, native_enum=False, length=20, values_callable=enum_values),
        default=MaintenanceStatus.PENDING,
        nullable=False,
        index=True
    )
    recurrence: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # {"type": "time", "interval_days": 90}
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    assigned_to: Mapped[str | None] = mapped_column(String(200), nullable=True)

    estimated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    estimated_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_cost: Mapped[float | None] = mapped_column(Float, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    parts_needed: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # [{"inventory_id", "quantity"}]
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    images_before: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    images_after: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    boat: Mapped["Boat"] = relationship("Boat", back_populates="maintenance_tasks")
