import httpx
import pytest

from conftest import PASSWORD
from officetrack.main import create_app


@pytest.fixture
async def app(settings, engine):
    app = create_app(settings)
    yield app
    await app.state.engine.dispose()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="https://testserver") as client:
        yield client


@pytest.fixture
def auth(app, users):
    """Bearer headers for a seeded user key."""

    def _headers(key: str) -> dict[str, str]:
        user = users[key]
        return {"Authorization": f"Bearer {app.state.token_gate.issue(user.id, user.role)}"}

    return _headers


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ── Auth ─────────────────────────────────────────────────────────────────────


async def test_login_sets_cookie_and_me_resolves_it(client, users, settings):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "employee@example.com", "password": PASSWORD}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "employee@example.com"
    assert settings.AUTH_COOKIE_NAME in response.cookies

    me = await client.get("/api/v1/auth/me")
    assert me.status_code == 200
    assert me.json()["role"] == "employee"

    await client.post("/api/v1/auth/logout")
    client.cookies.clear()
    assert (await client.get("/api/v1/auth/me")).status_code == 401


async def test_login_is_audited_with_client_details(client, users, audit_entries):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "employee@example.com", "password": PASSWORD},
        headers={"User-Agent": "pytest-client", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert response.status_code == 200

    [entry] = await audit_entries("login")
    assert entry.actor_id == users["employee"].id
    assert entry.entity == "User"
    assert (entry.ip_address, entry.user_agent) == ("203.0.113.7", "pytest-client")

    await client.post("/api/v1/auth/login", json={"email": "employee@example.com", "password": "nope"})
    assert len(await audit_entries("login")) == 1


async def test_login_with_wrong_password(client, users):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "employee@example.com", "password": "nope"}
    )
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "message": "Invalid email or password",
        "error": "Unauthenticated",
    }


@pytest.mark.parametrize("header", [None, "Bearer garbage", "Token abc"])
async def test_requests_without_valid_token_are_unauthenticated(client, header):
    headers = {"Authorization": header} if header else {}
    response = await client.get("/api/v1/time-entries/active", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthenticated"


# ── Time entries ─────────────────────────────────────────────────────────────


async def test_clock_flow(client, auth, users):
    headers = auth("employee")
    response = await client.post("/api/v1/time-entries/clock-in", json={"note": "Early start"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["status"] == "active"

    again = await client.post("/api/v1/time-entries/clock-in", headers=headers)
    assert again.status_code == 409
    assert again.json()["error"] == "Conflict"
    assert "active session already exists" in again.json()["message"]

    assert (await client.post("/api/v1/time-entries/break-start", json={"reason": "Lunch"}, headers=headers)).status_code == 201
    blocked = await client.post("/api/v1/time-entries/clock-out", headers=headers)
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "InvalidState"

    ended = await client.post("/api/v1/time-entries/break-end", headers=headers)
    assert ended.status_code == 200
    assert ended.json()["break_end"] is not None

    active = await client.get("/api/v1/time-entries/active", headers=headers)
    assert active.status_code == 200
    assert len(active.json()["breaks"]) == 1

    out = await client.post("/api/v1/time-entries/clock-out", json={"note": "Done"}, headers=headers)
    assert out.status_code == 200
    assert out.json()["work_minutes"] >= 0

    assert (await client.get("/api/v1/time-entries/active", headers=headers)).json() is None


async def test_break_end_without_break(client, auth, users):
    headers = auth("employee")
    response = await client.post("/api/v1/time-entries/break-end", headers=headers)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


async def test_clock_out_without_session(client, auth, users):
    response = await client.post("/api/v1/time-entries/clock-out", headers=auth("employee"))
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidState"


async def test_who_is_working_is_privileged(client, auth, users):
    await client.post("/api/v1/time-entries/clock-in", headers=auth("employee"))
    assert (await client.get("/api/v1/time-entries/who-is-working", headers=auth("employee"))).status_code == 403

    response = await client.get("/api/v1/time-entries/who-is-working", headers=auth("hr"))
    assert response.status_code == 200
    assert [w["email"] for w in response.json()] == ["employee@example.com"]


async def test_stats_validates_dates(client, auth, users):
    ok = await client.get(
        "/api/v1/time-entries/stats",
        params={"startDate": "2024-06-10", "endDate": "2024-06-12"},
        headers=auth("employee"),
    )
    assert ok.status_code == 200
    assert len(ok.json()["days"]) == 3

    bad = await client.get(
        "/api/v1/time-entries/stats",
        params={"startDate": "2024-06-12", "endDate": "2024-06-10"},
        headers=auth("employee"),
    )
    assert bad.status_code == 400
    assert bad.json()["error"] == "InvalidInput"


async def test_today_reflects_clock_state(client, auth, users):
    headers = auth("employee")
    before = await client.get("/api/v1/time-entries/today", headers=headers)
    assert before.status_code == 200
    assert before.json()["status"] == "no-session"

    await client.post("/api/v1/time-entries/clock-in", headers=headers)
    during = (await client.get("/api/v1/time-entries/today", headers=headers)).json()
    assert during["status"] == "active"
    assert during["on_break"] is False

    await client.post("/api/v1/time-entries/clock-out", headers=headers)
    assert (await client.get("/api/v1/time-entries/today", headers=headers)).json()["status"] == "completed"

    again = await client.post("/api/v1/time-entries/clock-in", headers=headers)
    assert again.status_code == 409


async def test_manual_entry_endpoint(client, auth, users):
    body = {
        "user_id": str(users["employee"].id),
        "date": "2024-06-10",
        "clock_in": "2024-06-10T09:00:00Z",
        "clock_out": "2024-06-10T17:00:00Z",
        "reason": "Badge reader down",
    }
    denied = await client.post("/api/v1/time-entries/manual", json=body, headers=auth("employee"))
    assert denied.status_code == 403

    created = await client.post("/api/v1/time-entries/manual", json=body, headers=auth("manager"))
    assert created.status_code == 201
    assert created.json()["status"] == "completed"
    assert created.json()["total_work_minutes"] == 480

    duplicate = await client.post("/api/v1/time-entries/manual", json=body, headers=auth("admin"))
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Conflict"

    backwards = {**body, "date": "2024-06-11", "clock_in": "2024-06-11T17:00:00Z", "clock_out": "2024-06-11T09:00:00Z"}
    response = await client.post("/api/v1/time-entries/manual", json=backwards, headers=auth("admin"))
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidInput"


# ── Leaves ───────────────────────────────────────────────────────────────────


async def test_leave_lifecycle(client, auth, users, leave_types):
    allocated = await client.post(
        "/api/v1/leaves/balances",
        json={"user_id": str(users["employee"].id), "year": 2024, "leave_type": "CL", "total_allocated": 960},
        headers=auth("hr"),
    )
    assert allocated.status_code == 200

    applied = await client.post(
        "/api/v1/leaves/apply",
        json={
            "leave_type": "CL",
            "start_date": "2024-06-10",
            "end_date": "2024-06-10",
            "duration": "full-day",
            "reason": "Family function",
            "cc_users": [str(users["teammate"].id)],
        },
        headers=auth("employee"),
    )
    assert applied.status_code == 201
    request = applied.json()
    assert request["status"] == "pending"
    assert request["leave_type"]["code"] == "CL"
    assert [u["email"] for u in request["cc_users"]] == ["teammate@example.com"]

    pending = await client.get("/api/v1/leaves/pending", headers=auth("manager"))
    assert [r["id"] for r in pending.json()["items"]] == [request["id"]]

    forbidden = await client.post(f"/api/v1/leaves/{request['id']}/approve", headers=auth("manager"))
    assert forbidden.status_code == 403

    approved = await client.post(
        f"/api/v1/leaves/{request['id']}/approve", json={"comment": "Enjoy"}, headers=auth("admin")
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["debited_minutes"] == 480

    twice = await client.post(f"/api/v1/leaves/{request['id']}/approve", headers=auth("admin"))
    assert twice.status_code == 409
    assert twice.json()["error"] == "InvalidState"

    balances = await client.get("/api/v1/leaves/balances", params={"year": 2024}, headers=auth("employee"))
    [balance] = balances.json()
    assert (balance["used"], balance["remaining"]) == (480, 480)

    cancelled = await client.post(f"/api/v1/leaves/{request['id']}/cancel", headers=auth("admin"))
    assert cancelled.json()["status"] == "cancelled"
    [balance] = (await client.get("/api/v1/leaves/balances", headers=auth("employee"))).json()
    assert balance["used"] == 0

    mine = await client.get("/api/v1/leaves/my", headers=auth("employee"))
    assert mine.json()["total"] == 1


async def test_leave_apply_validation_errors(client, auth, users, leave_types):
    weekend = await client.post(
        "/api/v1/leaves/apply",
        json={"leave_type": "CL", "start_date": "2024-06-15", "end_date": "2024-06-15", "reason": "Trip"},
        headers=auth("employee"),
    )
    assert weekend.status_code == 400
    assert weekend.json()["error"] == "InvalidInput"

    unknown = await client.post(
        "/api/v1/leaves/apply",
        json={"leave_type": "ZZ", "start_date": "2024-06-10", "end_date": "2024-06-10", "reason": "Trip"},
        headers=auth("employee"),
    )
    assert unknown.status_code == 404


async def test_team_leaves_filters(client, auth, users, leave_types):
    for key, start, end in [("employee", "2024-06-10", "2024-06-12"), ("outsider", "2024-06-17", "2024-06-17")]:
        response = await client.post(
            "/api/v1/leaves/apply",
            json={"leave_type": "CL", "start_date": start, "end_date": end, "reason": "Trip"},
            headers=auth(key),
        )
        assert response.status_code == 201

    url = "/api/v1/leaves/team"
    assert (await client.get(url, headers=auth("employee"))).status_code == 403

    mine = await client.get(url, headers=auth("manager"))
    assert [r["user"]["email"] for r in mine.json()["items"]] == ["employee@example.com"]

    touching = await client.get(
        url, params={"startDate": "2024-06-12", "endDate": "2024-06-17"}, headers=auth("admin")
    )
    assert touching.json()["total"] == 2

    after = await client.get(
        url, params={"startDate": "2024-06-13", "endDate": "2024-06-16", "status": "pending"}, headers=auth("admin")
    )
    assert after.json()["total"] == 0

    by_user = await client.get(url, params={"userId": str(users["outsider"].id)}, headers=auth("hr"))
    assert [r["start_date"] for r in by_user.json()["items"]] == ["2024-06-17"]


async def test_balances_of_others_need_privilege(client, auth, users):
    url = "/api/v1/leaves/balances"
    params = {"user_id": str(users["teammate"].id)}
    assert (await client.get(url, params=params, headers=auth("employee"))).status_code == 403
    assert (await client.get(url, params=params, headers=auth("hr"))).status_code == 200


async def test_list_all_leaves_is_privileged(client, auth, users):
    assert (await client.get("/api/v1/leaves/all", headers=auth("manager"))).status_code == 403
    assert (await client.get("/api/v1/leaves/all", headers=auth("hr"))).status_code == 200


# ── Leave types ──────────────────────────────────────────────────────────────


async def test_leave_type_crud(client, auth, users, leave_types):
    listed = await client.get("/api/v1/leave-types", headers=auth("employee"))
    assert [t["code"] for t in listed.json()] == ["CL", "SL"]

    denied = await client.post("/api/v1/leave-types", json={"code": "ML", "name": "Maternity"}, headers=auth("hr"))
    assert denied.status_code == 403

    created = await client.post(
        "/api/v1/leave-types", json={"code": "ml", "name": "Maternity", "annual_quota": 0}, headers=auth("admin")
    )
    assert created.status_code == 201
    type_id = created.json()["id"]
    assert created.json()["code"] == "ML"

    duplicate = await client.post("/api/v1/leave-types", json={"code": "ML", "name": "Again"}, headers=auth("admin"))
    assert duplicate.status_code == 409

    patched = await client.patch(f"/api/v1/leave-types/{type_id}", json={"annual_quota": 480}, headers=auth("admin"))
    assert patched.json()["annual_quota"] == 480

    removed = await client.delete(f"/api/v1/leave-types/{type_id}", headers=auth("admin"))
    assert removed.json()["is_active"] is False
