from app.core.security import hash_password
from app.models.audit import AuditLog
from app.models.user import User
from app.models.workflow import WorkflowConfiguration

API = "/api/v1"


def _stage(key, order, roles, terminal=False):
    return {"stage_key": key, "stage_name": key.title(), "order": order,
            "allowed_roles": roles, "is_terminal": terminal}


def test_login_and_me(client, db, world):
    db.add(User(name="Carol", email="carol@acme-industries.com",
                password_hash=hash_password("s3cret-pass"), role="COMPANY_ADMIN",
                company_id=world.company.id, is_active=True))
    db.commit()

    r = client.post(f"{API}/auth/login",
                    json={"email": "Carol@Acme-Industries.com", "password": "wrong"})
    assert r.status_code == 401

    r = client.post(f"{API}/auth/login",
                    json={"email": "Carol@Acme-Industries.com", "password": "s3cret-pass"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    assert r.json()["role"] == "COMPANY_ADMIN"

    r = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["company_id"] == world.company.id


def test_inactive_user_cannot_log_in(client, db, world):
    db.add(User(name="Gone", email="gone@acme-industries.com",
                password_hash=hash_password("pw"), role="EMPLOYEE",
                company_id=world.company.id, is_active=False))
    db.commit()

    r = client.post(f"{API}/auth/login", json={"email": "gone@acme-industries.com", "password": "pw"})

    assert r.status_code == 403


def test_companies(client, db, world, headers):
    r = client.post(f"{API}/companies", json={"code": "beta", "name": "Beta Ltd"},
                    headers=headers(world.users.super_admin))
    assert r.status_code == 201
    assert r.json()["code"] == "BETA"

    r = client.post(f"{API}/companies", json={"code": "BETA", "name": "Again"},
                    headers=headers(world.users.super_admin))
    assert r.status_code == 409

    r = client.post(f"{API}/companies", json={"code": "GAMMA", "name": "Gamma"},
                    headers=headers(world.users.company_admin))
    assert r.status_code == 403

    r = client.get(f"{API}/companies", headers=headers(world.users.company_admin))
    assert [c["code"] for c in r.json()] == ["ACME"]

    assert db.query(AuditLog).filter(AuditLog.table_name == "companies").count() == 1


def test_workflow_config_lifecycle(client, db, workflows, headers):
    h = headers(workflows.users.company_admin)
    body = {
        "config_id": "WF-ORDER-ACME-FAST",
        "entity_type": "order",
        "workflow_name": "Single approval",
        "stages": [_stage("COMPANY_APPROVAL", 1, ["COMPANY_ADMIN"], terminal=True)],
        "status_on_approval": {"COMPANY_APPROVAL": "APPROVED"},
    }

    r = client.post(f"{API}/workflow-configs", json=body, headers=h)
    assert r.status_code == 201
    assert r.json()["entity_type"] == "ORDER"
    assert r.json()["version"] == 1

    # only one active config per entity type
    active = db.query(WorkflowConfiguration).filter(
        WorkflowConfiguration.entity_type == "ORDER",
        WorkflowConfiguration.is_active.is_(True)).all()
    assert [c.config_id for c in active] == ["WF-ORDER-ACME-FAST"]

    r = client.post(f"{API}/workflow-configs", json=body, headers=h)
    assert r.status_code == 409

    r = client.put(f"{API}/workflow-configs/WF-ORDER-ACME-FAST",
                   json={"workflow_name": "Single approval v2"}, headers=h)
    assert r.json()["version"] == 2

    r = client.post(f"{API}/workflow-configs/WF-ORDER-ACME-2STAGE/activate", headers=h)
    assert r.status_code == 200
    assert r.json()["is_active"] is True

    r = client.get(f"{API}/workflow-configs", params={"entity_type": "ORDER"}, headers=h)
    flags = {c["config_id"]: c["is_active"] for c in r.json()}
    assert flags["WF-ORDER-ACME-2STAGE"] is True
    assert flags["WF-ORDER-ACME-FAST"] is False
    assert sum(flags.values()) == 1


def test_workflow_config_validation(client, workflows, headers):
    h = headers(workflows.users.company_admin)
    body = {
        "config_id": "WF-GRN-BAD",
        "entity_type": "GRN",
        "workflow_name": "Bad",
        "stages": [_stage("LOCATION_APPROVAL", 1, ["COMPANY_ADMIN"]),
                   _stage("COMPANY_APPROVAL", 2, ["COMPANY_ADMIN"])],
    }

    r = client.post(f"{API}/workflow-configs", json=body, headers=h)
    assert r.status_code == 422

    r = client.get(f"{API}/workflow-configs/WF-NOPE", headers=h)
    assert r.status_code == 404

    r = client.get(f"{API}/workflow-configs", headers=headers(workflows.users.location_admin))
    assert r.status_code == 403
