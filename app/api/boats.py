"""
Boat API Endpoints
Boats, equipment, inventory and maintenance for boat owners
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user, get_current_owner
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.boat import EquipmentCategory, EquipmentStatus, MaintenanceStatus
from app.db.models.user import User
from app.services.boats.schemas import (
    BoatCreateRequest,
    BoatUpdateRequest,
    BoatResponse,
    EquipmentCreateRequest,
    EquipmentUpdateRequest,
    EquipmentResponse,
    EquipmentTreeNode,
    InventoryCreateRequest,
    InventoryUpdateRequest,
    InventoryDeductRequest,
    InventoryResponse,
    MaintenanceTaskCreateRequest,
    MaintenanceTaskUpdateRequest,
    MaintenanceTaskResponse,
    MaintenanceFromTemplateRequest,
    MaintenanceCompleteRequest,
    MaintenanceCompleteResponse,
)
from app.services.boats.maintenance_service import MaintenanceService
from app.services.boats.service import BoatService

router = APIRouter(prefix="/boats", tags=["boats"])


@router.get("", response_model=list[BoatResponse])
def list_my_boats(
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return BoatService(db).list_boats(current_user)


@router.post("", response_model=BoatResponse, status_code=status.HTTP_201_CREATED)
def create_boat(
    payload: BoatCreateRequest,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return BoatService(db).create_boat(current_user, payload)


@router.get("/{boat_id}", response_model=BoatResponse)
def get_boat(boat_id: int, db: Session = Depends(get_db)):
    """Public boat details (shown on journey and leg pages)"""
    try:
        return BoatService(db).get_boat(boat_id)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{boat_id}", response_model=BoatResponse)
def update_boat(
    boat_id: int,
    payload: BoatUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).update_boat(boat_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{boat_id}")
def delete_boat(
    boat_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        BoatService(db).delete_boat(boat_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}


# ---- Equipment ----

@router.get("/{boat_id}/equipment", response_model=list[EquipmentResponse])
def list_equipment(
    boat_id: int,
    category: EquipmentCategory | None = Query(None),
    equipment_status: EquipmentStatus | None = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).list_equipment(boat_id, current_user, category, equipment_status)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{boat_id}/equipment/tree", response_model=list[EquipmentTreeNode])
def get_equipment_tree(
    boat_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).get_equipment_tree(boat_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post("/{boat_id}/equipment", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
def create_equipment(
    boat_id: int,
    payload: EquipmentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).create_equipment(boat_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{boat_id}/equipment/{equipment_id}", response_model=EquipmentResponse)
def get_equipment(
    boat_id: int,
    equipment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).get_equipment(boat_id, equipment_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{boat_id}/equipment/{equipment_id}", response_model=EquipmentResponse)
def update_equipment(
    boat_id: int,
    equipment_id: int,
    payload: EquipmentUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).update_equipment(boat_id, equipment_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{boat_id}/equipment/{equipment_id}")
def delete_equipment(
    boat_id: int,
    equipment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        BoatService(db).delete_equipment(boat_id, equipment_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}


# ---- Inventory ----

@router.get("/{boat_id}/inventory", response_model=list[InventoryResponse])
def list_inventory(
    boat_id: int,
    low_stock: bool = Query(False, description="Only items at or below their minimum quantity"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = BoatService(db)
    try:
        if low_stock:
            return service.list_low_stock(boat_id, current_user)
        return service.list_inventory(boat_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post("/{boat_id}/inventory", response_model=InventoryResponse, status_code=status.HTTP_201_CREATED)
def create_inventory_item(
    boat_id: int,
    payload: InventoryCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).create_inventory_item(boat_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{boat_id}/inventory/{item_id}", response_model=InventoryResponse)
def get_inventory_item(
    boat_id: int,
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).get_inventory_item(boat_id, item_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{boat_id}/inventory/{item_id}", response_model=InventoryResponse)
def update_inventory_item(
    boat_id: int,
    item_id: int,
    payload: InventoryUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).update_inventory_item(boat_id, item_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post("/{boat_id}/inventory/{item_id}/deduct", response_model=InventoryResponse)
def deduct_inventory(
    boat_id: int,
    item_id: int,
    payload: InventoryDeductRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return BoatService(db).deduct_inventory(boat_id, item_id, current_user, payload.quantity)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{boat_id}/inventory/{item_id}")
def delete_inventory_item(
    boat_id: int,
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        BoatService(db).delete_inventory_item(boat_id, item_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}


# ---- Maintenance ----

@router.get("/{boat_id}/maintenance", response_model=list[MaintenanceTaskResponse])
def list_maintenance_tasks(
    boat_id: int,
    task_status: MaintenanceStatus | None = Query(None, alias="status"),
    templates: bool = Query(False, description="List reusable templates instead of tasks"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return MaintenanceService(db).list_tasks(boat_id, current_user, task_status, templates)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{boat_id}/maintenance/overdue", response_model=list[MaintenanceTaskResponse])
def list_overdue_maintenance(
    boat_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return MaintenanceService(db).list_overdue(boat_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{boat_id}/maintenance/upcoming", response_model=list[MaintenanceTaskResponse])
def list_upcoming_maintenance(
    boat_id: int,
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return MaintenanceService(db).list_upcoming(boat_id, current_user, days)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post(
    "/{boat_id}/maintenance",
    response_model=MaintenanceTaskResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_maintenance_task(
    boat_id: int,
    payload: MaintenanceTaskCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return MaintenanceService(db).create_task(boat_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post(
    "/{boat_id}/maintenance/templates/{template_id}",
    response_model=MaintenanceTaskResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_task_from_template(
    boat_id: int,
    template_id: int,
    payload: MaintenanceFromTemplateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return MaintenanceService(db).create_from_template(boat_id, template_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{boat_id}/maintenance/{task_id}", response_model=MaintenanceTaskResponse)
def get_maintenance_task(
    boat_id: int,
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return MaintenanceService(db).get_task(boat_id, task_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{boat_id}/maintenance/{task_id}", response_model=MaintenanceTaskResponse)
def update_maintenance_task(
    boat_id: int,
    task_id: int,
    payload: MaintenanceTaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return MaintenanceService(db).update_task(boat_id, task_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post("/{boat_id}/maintenance/{task_id}/complete", response_model=MaintenanceCompleteResponse)
def complete_maintenance_task(
    boat_id: int,
    task_id: int,
    payload: MaintenanceCompleteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Deducts the task's parts from inventory and schedules the next occurrence of a recurring task"""
    try:
        return MaintenanceService(db).complete_task(boat_id, task_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{boat_id}/maintenance/{task_id}")
def delete_maintenance_task(
    boat_id: int,
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        MaintenanceService(db).delete_task(boat_id, task_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}
