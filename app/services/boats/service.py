"""
Boat Management Service
Boats, their equipment tree and spare-part inventory
"""
import logging

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.models.boat import (
    Boat,
    BoatEquipment,
    BoatInventory,
    BoatMaintenanceTask,
    EquipmentCategory,
    EquipmentStatus,
)
from app.db.models.user import User
from app.services.boats.schemas import (
    BoatCreateRequest,
    BoatUpdateRequest,
    EquipmentCreateRequest,
    EquipmentUpdateRequest,
    InventoryCreateRequest,
    InventoryUpdateRequest,
)

logger = logging.getLogger(__name__)


def build_equipment_tree(items: list[BoatEquipment]) -> list[dict]:
    """Nest a flat equipment list by parent_id; orphans become roots"""
    nodes = {}
    for item in items:
        node = {column.name: getattr(item, column.name) for column in BoatEquipment.__table__.columns}
        node["children"] = []
        nodes[item.id] = node

    roots = []
    for item in items:
        node = nodes[item.id]
        if item.parent_id is not None and item.parent_id in nodes:
            nodes[item.parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots


class BoatService:
    def __init__(self, db: Session):
        self.db = db

    # ---- Boats ----

    def get_boat(self, boat_id: int) -> Boat:
        boat = self.db.query(Boat).filter(Boat.id == boat_id).first()
        if boat is None:
            raise NotFoundError("Boat not found")
        return boat

    def get_owned_boat(self, boat_id: int, user: User) -> Boat:
        """Boat owned by the user, PermissionError otherwise"""
        boat = self.get_boat(boat_id)
        if boat.owner_id != user.id:
            raise PermissionError("Not authorized to manage this boat")
        return boat

    def list_boats(self, owner: User) -> list[Boat]:
        return (
            self.db.query(Boat)
            .filter(Boat.owner_id == owner.id)
            .order_by(Boat.created_at.desc(), Boat.id.desc())
            .all()
        )

    def create_boat(self, owner: User, data: BoatCreateRequest) -> Boat:
        boat = Boat(owner_id=owner.id, **data.model_dump())
        self.db.add(boat)
        self.db.commit()
        self.db.refresh(boat)
        logger.info("Boat %s created by user %s", boat.id, owner.id)
        return boat

    def update_boat(self, boat_id: int, user: User, data: BoatUpdateRequest) -> Boat:
        boat = self.get_owned_boat(boat_id, user)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in ("name", "images") and value is None:
                continue
            setattr(boat, field, value)
        self.db.commit()
        self.db.refresh(boat)
        return boat

    def delete_boat(self, boat_id: int, user: User) -> None:
        boat = self.get_owned_boat(boat_id, user)
        self.db.delete(boat)
        self.db.commit()
        logger.info("Boat %s deleted by user %s", boat_id, user.id)

    # ---- Equipment ----

    def _get_equipment(self, boat_id: int, equipment_id: int) -> BoatEquipment:
        item = (
            self.db.query(BoatEquipment)
            .filter(BoatEquipment.id == equipment_id, BoatEquipment.boat_id == boat_id)
            .first()
        )
        if item is None:
            raise NotFoundError("Equipment not found")
        return item

    def _validate_parent(self, boat_id: int, parent_id: int | None, equipment_id: int | None = None) -> None:
        if parent_id is None:
            return
        if equipment_id is not None and parent_id == equipment_id:
            raise ValueError("Equipment cannot be its own parent")
        parent = (
            self.db.query(BoatEquipment)
            .filter(BoatEquipment.id == parent_id, BoatEquipment.boat_id == boat_id)
            .first()
        )
        if parent is None:
            raise ValueError("Parent equipment must belong to the same boat")
        if equipment_id is None:
            return

        # The new parent may not sit anywhere below the item
        seen = {parent.id}
        ancestor_id = parent.parent_id
        while ancestor_id is not None and ancestor_id not in seen:
            if ancestor_id == equipment_id:
                raise ValueError("Equipment cannot be moved under one of its own sub-items")
            seen.add(ancestor_id)
            ancestor_id = (
                self.db.query(BoatEquipment.parent_id).filter(BoatEquipment.id == ancestor_id).scalar()
            )

    def list_equipment(
        self,
        boat_id: int,
        user: User,
        category: EquipmentCategory | None = None,
        status: EquipmentStatus | None = None,
    ) -> list[BoatEquipment]:
        self.get_owned_boat(boat_id, user)
        query = self.db.query(BoatEquipment).filter(BoatEquipment.boat_id == boat_id)
        if category is not None:
            query = query.filter(BoatEquipment.category == category)
        if status is not None:
            query = query.filter(BoatEquipment.status == status)
        return query.order_by(BoatEquipment.category, BoatEquipment.name).all()

    def get_equipment_tree(self, boat_id: int, user: User) -> list[dict]:
        return build_equipment_tree(self.list_equipment(boat_id, user))

    def get_equipment(self, boat_id: int, equipment_id: int, user: User) -> BoatEquipment:
        self.get_owned_boat(boat_id, user)
        return self._get_equipment(boat_id, equipment_id)

    def create_equipment(self, boat_id: int, user: User, data: EquipmentCreateRequest) -> BoatEquipment:
        self.get_owned_boat(boat_id, user)
        self._validate_parent(boat_id, data.parent_id)
        item = BoatEquipment(boat_id=boat_id, **data.model_dump())
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def update_equipment(
        self, boat_id: int, equipment_id: int, user: User, data: EquipmentUpdateRequest
    ) -> BoatEquipment:
        self.get_owned_boat(boat_id, user)
        item = self._get_equipment(boat_id, equipment_id)
        updates = data.model_dump(exclude_unset=True)
        if "parent_id" in updates:
            self._validate_parent(boat_id, updates["parent_id"], equipment_id)
        for field, value in updates.items():
            if value is None and field in ("name", "category", "specs", "images", "status", "quantity"):
                continue
            setattr(item, field, value)
        self.db.commit()
        self.db.refresh(item)
        return item

    def delete_equipment(self, boat_id: int, equipment_id: int, user: User) -> None:
        self.get_owned_boat(boat_id, user)
        item = self._get_equipment(boat_id, equipment_id)
        # Children move up to the root, linked inventory and maintenance tasks are unlinked
        self.db.query(BoatEquipment).filter(BoatEquipment.parent_id == item.id).update(
            {BoatEquipment.parent_id: None}, synchronize_session=False
        )
        self.db.query(BoatInventory).filter(BoatInventory.equipment_id == item.id).update(
            {BoatInventory.equipment_id: None}, synchronize_session=False
        )
        self.db.query(BoatMaintenanceTask).filter(BoatMaintenanceTask.equipment_id == item.id).update(
            {BoatMaintenanceTask.equipment_id: None}, synchronize_session=False
        )
        self.db.delete(item)
        self.db.commit()

    # ---- Inventory ----

    def _get_inventory_item(self, boat_id: int, item_id: int) -> BoatInventory:
        item = (
            self.db.query(BoatInventory)
            .filter(BoatInventory.id == item_id, BoatInventory.boat_id == boat_id)
            .first()
        )
        if item is None:
            raise NotFoundError("Inventory item not found")
        return item

    def validate_equipment_link(self, boat_id: int, equipment_id: int | None) -> None:
        if equipment_id is None:
            return
        linked = (
            self.db.query(BoatEquipment)
            .filter(BoatEquipment.id == equipment_id, BoatEquipment.boat_id == boat_id)
            .first()
        )
        if linked is None:
            raise ValueError("Linked equipment must belong to the same boat")

    def list_inventory(self, boat_id: int, user: User) -> list[BoatInventory]:
        self.get_owned_boat(boat_id, user)
        return (
            self.db.query(BoatInventory)
            .filter(BoatInventory.boat_id == boat_id)
            .order_by(BoatInventory.category, BoatInventory.name)
            .all()
        )

    def list_low_stock(self, boat_id: int, user: User) -> list[BoatInventory]:
        self.get_owned_boat(boat_id, user)
        return self._low_stock_query(boat_id).all()

    def _low_stock_query(self, boat_id: int):
        return (
            self.db.query(BoatInventory)
            .filter(
                BoatInventory.boat_id == boat_id,
                BoatInventory.min_quantity > 0,
                BoatInventory.quantity <= BoatInventory.min_quantity,
            )
            .order_by(BoatInventory.name)
        )

    def low_stock_by_boat(self) -> dict[int, list[BoatInventory]]:
        """Low-stock items across all boats, grouped by boat id (scheduled check)"""
        items = (
            self.db.query(BoatInventory)
            .filter(
                BoatInventory.min_quantity > 0,
                BoatInventory.quantity <= BoatInventory.min_quantity,
            )
            .order_by(BoatInventory.boat_id, BoatInventory.name)
            .all()
        )
        grouped: dict[int, list[BoatInventory]] = {}
        for item in items:
            grouped.setdefault(item.boat_id, []).append(item)
        return grouped

    def get_inventory_item(self, boat_id: int, item_id: int, user: User) -> BoatInventory:
        self.get_owned_boat(boat_id, user)
        return self._get_inventory_item(boat_id, item_id)

    def create_inventory_item(self, boat_id: int, user: User, data: InventoryCreateRequest) -> BoatInventory:
        self.get_owned_boat(boat_id, user)
        self.validate_equipment_link(boat_id, data.equipment_id)
        item = BoatInventory(boat_id=boat_id, **data.model_dump())
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def update_inventory_item(
        self, boat_id: int, item_id: int, user: User, data: InventoryUpdateRequest
    ) -> BoatInventory:
        self.get_owned_boat(boat_id, user)
        item = self._get_inventory_item(boat_id, item_id)
        updates = data.model_dump(exclude_unset=True)
        if "equipment_id" in updates:
            self.validate_equipment_link(boat_id, updates["equipment_id"])
        for field, value in updates.items():
            if value is None and field in ("name", "category", "quantity", "min_quantity", "currency"):
                continue
            setattr(item, field, value)
        self.db.commit()
        self.db.refresh(item)
        return item

    def deduct_inventory(self, boat_id: int, item_id: int, user: User, quantity: int) -> BoatInventory:
        """Consume stock; quantity never goes below zero"""
        self.get_owned_boat(boat_id, user)
        item = self._get_inventory_item(boat_id, item_id)
        item.quantity = max(0, item.quantity - quantity)
        self.db.commit()
        self.db.refresh(item)
        if item.is_low_stock:
            logger.info("Inventory item %s on boat %s is low on stock (%s left)", item.id, boat_id, item.quantity)
        return item

    def delete_inventory_item(self, boat_id: int, item_id: int, user: User) -> None:
        self.get_owned_boat(boat_id, user)
        item = self._get_inventory_item(boat_id, item_id)
        self.db.delete(item)
        self.db.commit()
