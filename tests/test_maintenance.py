from datetime import date, timedelta

import pytest

from app.db.models.boat import BoatMaintenanceTask
from tests.factories import auth_headers, make_boat, make_user


@pytest.fixture
def boat(db, owner):
    return make_boat(db, owner)


def _task(client, owner, boat, **fields):
    body = {"title": "Change impeller", "category": "routine", **fields}
    response = client.post(f"/boats/{boat.id}/maintenance", headers=auth_headers(owner), json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_tasks_are_listed_by_due_date_then_priority(client, owner, boat):
    today = date.today()
    _task(client, owner, boat, title="Winterize", category="seasonal")
    _task(client, owner, boat, title="Antifouling", due_date=str(today + timedelta(days=20)), priority="low")
    _task(client, owner, boat, title="Rig check", due_date=str(today + timedelta(days=20)), priority="critical")
    _task(client, owner, boat, title="Oil change", due_date=str(today + timedelta(days=5)))

    tasks = client.get(f"/boats/{boat.id}/maintenance", headers=auth_headers(owner)).json()
    assert [t["title"] for t in tasks] == ["Oil change", "Rig check", "Antifouling", "Winterize"]
    assert tasks[0]["status"] == "pending"
    assert tasks[0]["priority"] == "medium"


def test_only_boat_owner_manages_maintenance(client, db, owner, boat):
    stranger = make_user(db, "stranger", roles=("owner",))
    task = _task(client, owner, boat)

    assert client.get(f"/boats/{boat.id}/maintenance", headers=auth_headers(stranger)).status_code == 403
    response = client.put(
        f"/boats/{boat.id}/maintenance/{task['id']}", headers=auth_headers(stranger), json={"title": "Mine"}
    )
    assert response.status_code == 403


def test_complete_deducts_parts_and_schedules_next_occurrence(client, db, owner, boat):
    headers = auth_headers(owner)
    impeller = client.post(
        f"/boats/{boat.id}/inventory", headers=headers, json={"name": "Impeller", "quantity": 3, "min_quantity": 1}
    ).json()
    engine = client.post(
        f"/boats/{boat.id}/equipment", headers=headers, json={"name": "Volvo D2-40", "category": "engine"}
    ).json()
    task = _task(
        client,
        owner,
        boat,
        equipment_id=engine["id"],
        due_date=str(date.today() - timedelta(days=2)),
        recurrence={"type": "time", "interval_days": 90},
        parts_needed=[{"inventory_id": impeller["id"], "quantity": 2}],
    )

    response = client.post(
        f"/boats/{boat.id}/maintenance/{task['id']}/complete",
        headers=headers,
        json={"actual_hours": 1.5, "notes": "Old impeller had two broken vanes"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["parts_deducted"] == 1
    assert body["task"]["status"] == "completed"
    assert body["task"]["completed_by"] == owner.id
    assert body["task"]["completed_at"] is not None
    assert body["task"]["actual_hours"] == 1.5

    next_task = body["next_task"]
    assert next_task["status"] == "pending"
    assert next_task["due_date"] == str(date.today() + timedelta(days=90))
    assert next_task["equipment_id"] == engine["id"]
    assert next_task["parts_needed"] == [{"inventory_id": impeller["id"], "quantity": 2}]

    stock = client.get(f"/boats/{boat.id}/inventory/{impeller['id']}", headers=headers).json()
    assert stock["quantity"] == 1
    assert stock["is_low_stock"] is True

    again = client.post(f"/boats/{boat.id}/maintenance/{task['id']}/complete", headers=headers, json={})
    assert again.status_code == 400


def test_complete_skips_parts_removed_from_inventory(client, owner, boat):
    headers = auth_headers(owner)
    filter_item = client.post(f"/boats/{boat.id}/inventory", headers=headers, json={"name": "Fuel filter"}).json()
    task = _task(client, owner, boat, parts_needed=[{"inventory_id": filter_item["id"], "quantity": 1}])
    client.delete(f"/boats/{boat.id}/inventory/{filter_item['id']}", headers=headers)

    body = client.post(f"/boats/{boat.id}/maintenance/{task['id']}/complete", headers=headers, json={}).json()
    assert body["task"]["status"] == "completed"
    assert body["parts_deducted"] == 0
    assert body["next_task"] is None


def test_overdue_and_upcoming_only_include_open_tasks(client, owner, boat):
    headers = auth_headers(owner)
    today = date.today()
    _task(client, owner, boat, title="Flare expiry", due_date=str(today - timedelta(days=3)))
    done = _task(client, owner, boat, title="Bilge clean", due_date=str(today - timedelta(days=1)))
    client.post(f"/boats/{boat.id}/maintenance/{done['id']}/complete", headers=headers, json={})
    _task(client, owner, boat, title="Life raft service", due_date=str(today + timedelta(days=10)))
    _task(client, owner, boat, title="Haul out", due_date=str(today + timedelta(days=60)))

    overdue = client.get(f"/boats/{boat.id}/maintenance/overdue", headers=headers).json()
    assert [t["title"] for t in overdue] == ["Flare expiry"]

    upcoming = client.get(f"/boats/{boat.id}/maintenance/upcoming", headers=headers, params={"days": 30}).json()
    assert [t["title"] for t in upcoming] == ["Life raft service"]

    completed = client.get(f"/boats/{boat.id}/maintenance", headers=headers, params={"status": "completed"}).json()
    assert [t["title"] for t in completed] == ["Bilge clean"]


def test_tasks_created_from_template(client, owner, boat):
    headers = auth_headers(owner)
    template = _task(
        client,
        owner,
        boat,
        title="Rigging inspection",
        category="inspection",
        priority="high",
        is_template=True,
        instructions="Check swages and pins",
    )

    response = client.post(
        f"/boats/{boat.id}/maintenance/templates/{template['id']}",
        headers=headers,
        json={"due_date": "2030-04-01", "assigned_to": "Rigger"},
    )
    assert response.status_code == 201
    task = response.json()
    assert task["template_id"] == template["id"]
    assert task["is_template"] is False
    assert task["instructions"] == "Check swages and pins"
    assert task["priority"] == "high"
    assert task["due_date"] == "2030-04-01"

    tasks = client.get(f"/boats/{boat.id}/maintenance", headers=headers).json()
    assert [t["id"] for t in tasks] == [task["id"]]
    templates = client.get(f"/boats/{boat.id}/maintenance", headers=headers, params={"templates": True}).json()
    assert [t["id"] for t in templates] == [template["id"]]

    completed = client.post(f"/boats/{boat.id}/maintenance/{template['id']}/complete", headers=headers, json={})
    assert completed.status_code == 400
    not_template = client.post(f"/boats/{boat.id}/maintenance/templates/{task['id']}", headers=headers, json={})
    assert not_template.status_code == 400


def test_task_links_must_stay_on_the_same_boat(client, db, owner, boat):
    headers = auth_headers(owner)
    other = make_boat(db, owner, name="Tender")
    foreign_part = client.post(f"/boats/{other.id}/inventory", headers=headers, json={"name": "Shear pin"}).json()

    response = client.post(
        f"/boats/{boat.id}/maintenance",
        headers=headers,
        json={
            "title": "Outboard service",
            "category": "repair",
            "parts_needed": [{"inventory_id": foreign_part["id"], "quantity": 1}],
        },
    )
    assert response.status_code == 400

    task = _task(client, owner, boat)
    response = client.put(
        f"/boats/{boat.id}/maintenance/{task['id']}", headers=headers, json={"status": "completed"}
    )
    assert response.status_code == 400
    response = client.put(
        f"/boats/{boat.id}/maintenance/{task['id']}", headers=headers, json={"status": "in_progress"}
    )
    assert response.json()["status"] == "in_progress"


def test_recurrence_needs_an_interval(client, owner, boat):
    response = client.post(
        f"/boats/{boat.id}/maintenance",
        headers=auth_headers(owner),
        json={"title": "Oil change", "category": "routine", "recurrence": {"type": "time"}},
    )
    assert response.status_code == 422


def test_equipment_and_boat_deletion_release_tasks(client, db, owner, boat):
    headers = auth_headers(owner)
    winch = client.post(
        f"/boats/{boat.id}/equipment", headers=headers, json={"name": "Primary winch", "category": "rigging"}
    ).json()
    task = _task(client, owner, boat, title="Service winch", equipment_id=winch["id"])

    client.delete(f"/boats/{boat.id}/equipment/{winch['id']}", headers=headers)
    assert client.get(f"/boats/{boat.id}/maintenance/{task['id']}", headers=headers).json()["equipment_id"] is None

    assert client.delete(f"/boats/{boat.id}", headers=headers).status_code == 200
    assert db.query(BoatMaintenanceTask).count() == 0
