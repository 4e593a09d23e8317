"""
Boat Maintenance Service
Maintenance tasks and templates, completion with part usage and time-based recurrence
"""
import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import case
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.models.boat import BoatInventory, BoatMaintenanceTask, MaintenancePriority, MaintenanceStatus
from app.db.models.user import User
from app.services.boats.schemas import (
    MaintenanceCompleteRequest,
    MaintenanceFromTemplateRequest,
    MaintenanceTaskCreateRequest,
    MaintenanceTaskUpdateRequest,
    PartNeeded,
)
from app.services.boats.service import BoatService

logger = logging.getLogger(__name__)

OPEN_STATUSES = (MaintenanceStatus.PENDING, MaintenanceStatus.IN_PROGRESS)

# Fields copied from a template or a completed recurring task
TASK_BLUEPRINT_FIELDS = (
    "equipment_id",
    "title",
    "description",
    "category",
    "priority",
    "instructions",
    "parts_needed",
    "recurrence",
    "estimated_hours",
    "estimated_cost",
)

PRIORITY_RANK = case(
    (BoatMaintenanceTask.priority == MaintenancePriority.CRITICAL, 0),
    (BoatMaintenanceTask.priority == MaintenancePriority.HIGH, 1),
    (BoatMaintenanceTask.priority == MaintenancePriority.MEDIUM, 2),
    else_=3,
)


class MaintenanceService:
    def __init__(self, db: Session):
        self.db = db
        self.boats = BoatService(db)

    def _get_task(self, boat_id: int, task_id: int) -> BoatMaintenanceTask:
        task = (
            self.db.query(BoatMaintenanceTask)
            .filter(BoatMaintenanceTask.id == task_id, BoatMaintenanceTask.boat_id == boat_id)
            .first()
        )
        if task is None:
            raise NotFoundError("Maintenance task not found")
        return task

    def _validate_parts(self, boat_id: int, parts: list[PartNeeded]) -> None:
        inventory_ids = {part.inventory_id for part in parts}
        if not inventory_ids:
            return
        found = {
            row[0]
            for row in self.db.query(BoatInventory.id).filter(
                BoatInventory.id.in_(inventory_ids), BoatInventory.boat_id == boat_id
            )
        }
        missing = sorted(inventory_ids - found)
        if missing:
            raise ValueError(f"Parts must be inventory items of the same boat (invalid: {missing})")

    def _open_tasks(self, boat_id: int):
        return self.db.query(BoatMaintenanceTask).filter(
            BoatMaintenanceTask.boat_id == boat_id,
            BoatMaintenanceTask.is_template.is_(False),
            BoatMaintenanceTask.status.in_(OPEN_STATUSES),
        )

    def list_tasks(
        self,
        boat_id: int,
        user: User,
        status: MaintenanceStatus | None = None,
        templates: bool = False,
    ) -> list[BoatMaintenanceTask]:
        """Tasks by due date (undated last), then urgency; templates by category and title"""
        self.boats.get_owned_boat(boat_id, user)
        query = self.db.query(BoatMaintenanceTask).filter(
            BoatMaintenanceTask.boat_id == boat_id,
            BoatMaintenanceTask.is_template.is_(templates),
        )
        if templates:
            return query.order_by(BoatMaintenanceTask.category, BoatMaintenanceTask.title).all()
        if status is not None:
            query = query.filter(BoatMaintenanceTask.status == status)
        return query.order_by(
            BoatMaintenanceTask.due_date.is_(None),
            BoatMaintenanceTask.due_date,
            PRIORITY_RANK,
            BoatMaintenanceTask.created_at.desc(),
        ).all()

    def list_overdue(self, boat_id: int, user: User, today: date | None = None) -> list[BoatMaintenanceTask]:
        self.boats.get_owned_boat(boat_id, user)
        today = today or date.today()
        return (
            self._open_tasks(boat_id)
            .filter(BoatMaintenanceTask.due_date < today)
            .order_by(BoatMaintenanceTask.due_date, PRIORITY_RANK)
            .all()
        )

    def list_upcoming(
        self, boat_id: int, user: User, days: int = 30, today: date | None = None
    ) -> list[BoatMaintenanceTask]:
        """Open tasks due from today through the next `days` days"""
        self.boats.get_owned_boat(boat_id, user)
        today = today or date.today()
        return (
            self._open_tasks(boat_id)
            .filter(
                BoatMaintenanceTask.due_date >= today,
                BoatMaintenanceTask.due_date <= today + timedelta(days=days),
            )
            .order_by(BoatMaintenanceTask.due_date, PRIORITY_RANK)
            .all()
        )

    def get_task(self, boat_id: int, task_id: int, user: User) -> BoatMaintenanceTask:
        self.boats.get_owned_boat(boat_id, user)
        return self._get_task(boat_id, task_id)

    def create_task(self, boat_id: int, user: User, data: MaintenanceTaskCreateRequest) -> BoatMaintenanceTask:
        self.boats.get_owned_boat(boat_id, user)
        if data.status == MaintenanceStatus.COMPLETED:
            raise ValueError("Create the task first, then complete it")
        self.boats.validate_equipment_link(boat_id, data.equipment_id)
        self._validate_parts(boat_id, data.parts_needed)
        task = BoatMaintenanceTask(boat_id=boat_id, **data.model_dump())
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        logger.info("Maintenance task %s created on boat %s", task.id, boat_id)
        return task

    def create_from_template(
        self, boat_id: int, template_id: int, user: User, data: MaintenanceFromTemplateRequest
    ) -> BoatMaintenanceTask:
        self.boats.get_owned_boat(boat_id, user)
        template = self._get_task(boat_id, template_id)
        if not template.is_template:
            raise ValueError("Task is not a template")
        task = BoatMaintenanceTask(
            boat_id=boat_id,
            template_id=template.id,
            **{field: getattr(template, field) for field in TASK_BLUEPRINT_FIELDS},
            **data.model_dump(),
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def update_task(
        self, boat_id: int, task_id: int, user: User, data: MaintenanceTaskUpdateRequest
    ) -> BoatMaintenanceTask:
        self.boats.get_owned_boat(boat_id, user)
        task = self._get_task(boat_id, task_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("status") == MaintenanceStatus.COMPLETED and task.status != MaintenanceStatus.COMPLETED:
            raise ValueError("Use the complete action to finish a task")
        if "equipment_id" in updates:
            self.boats.validate_equipment_link(boat_id, updates["equipment_id"])
        if data.parts_needed is not None:
            self._validate_parts(boat_id, data.parts_needed)
        for field, value in updates.items():
            if value is None and field in (
                "title", "category", "priority", "status", "parts_needed", "images_before", "images_after"
            ):
                continue
            setattr(task, field, value)
        self.db.commit()
        self.db.refresh(task)
        return task

    def complete_task(
        self,
        boat_id: int,
        task_id: int,
        user: User,
        data: MaintenanceCompleteRequest,
        today: date | None = None,
    ) -> dict:
        """
        Mark a task done

        Parts listed on the task are deducted from inventory; a part that no longer
        exists is logged and skipped. A time-based recurrence schedules the next
        task `interval_days` after today.

        Returns:
            {"task", "next_task", "parts_deducted"}
        """
        self.boats.get_owned_boat(boat_id, user)
        task = self._get_task(boat_id, task_id)
        if task.is_template:
            raise ValueError("Templates cannot be completed")
        if task.status == MaintenanceStatus.COMPLETED:
            raise ValueError("Task is already completed")

        deducted = 0
        for part in task.parts_needed or []:
            try:
                self.boats.deduct_inventory(boat_id, part["inventory_id"], user, part["quantity"])
                deducted += 1
            except NotFoundError:
                logger.warning(
                    "Part %s for maintenance task %s is no longer in inventory", part["inventory_id"], task.id
                )

        task.status = MaintenanceStatus.COMPLETED
        task.completed_at = datetime.now(timezone.utc)
        task.completed_by = user.id
        for field, value in data.model_dump(exclude_none=True).items():
            setattr(task, field, value)

        next_task = None
        recurrence = task.recurrence or {}
        if recurrence.get("type") == "time" and recurrence.get("interval_days"):
            today = today or date.today()
            next_task = BoatMaintenanceTask(
                boat_id=boat_id,
                template_id=task.template_id,
                due_date=today + timedelta(days=recurrence["interval_days"]),
                assigned_to=task.assigned_to,
                **{field: getattr(task, field) for field in TASK_BLUEPRINT_FIELDS},
            )
            self.db.add(next_task)

        self.db.commit()
        self.db.refresh(task)
        if next_task is not None:
            self.db.refresh(next_task)
            logger.info("Maintenance task %s completed; next due %s", task.id, next_task.due_date)
        return {"task": task, "next_task": next_task, "parts_deducted": deducted}

    def delete_task(self, boat_id: int, task_id: int, user: User) -> None:
        self.boats.get_owned_boat(boat_id, user)
        task = self._get_task(boat_id, task_id)
        # Tasks created from this one keep their data but lose the link
        self.db.query(BoatMaintenanceTask).filter(BoatMaintenanceTask.template_id == task.id).update(
            {BoatMaintenanceTask.template_id: None}, synchronize_session=False
        )
        self.db.delete(task)
        self.db.commit()
