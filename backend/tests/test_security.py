from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from jose import jwt

from officetrack.core.config import Settings
from officetrack.core.exceptions import Forbidden
from officetrack.core.permissions import Action, ensure_allowed, is_allowed
from officetrack.core.security import Identity, TokenGate, hash_password, verify_password


@pytest.fixture
def gate() -> TokenGate:
    return TokenGate(Settings(JWT_SECRET="unit-secret"))


def test_issue_then_resolve_round_trips(gate):
    user_id = uuid4()
    token = gate.issue(user_id, "manager")
    assert gate.resolve(token) == Identity(user_id=user_id, role="manager")


def test_expiry_is_seven_days(gate):
    user_id = uuid4()
    issued = datetime.now(timezone.utc) - timedelta(days=7, minutes=1)
    assert gate.resolve(gate.issue(user_id, "employee", now=issued)) is None

    recent = datetime.now(timezone.utc) - timedelta(days=6, hours=23)
    assert gate.resolve(gate.issue(user_id, "employee", now=recent)) is not None


@pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
def test_malformed_tokens_resolve_to_none(gate, token):
    assert gate.resolve(token) is None


def test_tampered_or_foreign_signature_is_rejected(gate):
    token = gate.issue(uuid4(), "employee")
    other = TokenGate(Settings(JWT_SECRET="someone-else"))
    assert other.resolve(token) is None

    header, payload, signature = token.split(".")
    flipped = signature[:-2] + ("AA" if signature[-2:] != "AA" else "BB")
    assert gate.resolve(f"{header}.{payload}.{flipped}") is None


def test_claims_must_carry_uuid_sub_and_known_role(gate):
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    bad_role = jwt.encode({"sub": str(uuid4()), "role": "root", "exp": exp}, "unit-secret")
    bad_sub = jwt.encode({"sub": "42", "role": "admin", "exp": exp}, "unit-secret")
    no_sub = jwt.encode({"role": "admin", "exp": exp}, "unit-secret")
    assert gate.resolve(bad_role) is None
    assert gate.resolve(bad_sub) is None
    assert gate.resolve(no_sub) is None


def test_signed_token_without_expiry_is_rejected(gate):
    forever = jwt.encode({"sub": str(uuid4()), "role": "admin"}, "unit-secret", algorithm="HS256")
    assert gate.resolve(forever) is None


def test_password_hashing():
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


@pytest.mark.parametrize(
    "role,action,allowed",
    [
        ("employee", Action.TIME_TRACK, True),
        ("employee", Action.LEAVE_APPLY, True),
        ("employee", Action.TIME_VIEW_TEAM, False),
        ("manager", Action.LEAVE_VIEW_TEAM, True),
        ("manager", Action.LEAVE_DECIDE, False),
        ("manager", Action.TIME_MANUAL_ENTRY, True),
        ("hr", Action.TIME_MANUAL_ENTRY, False),
        ("employee", Action.TIME_MANUAL_ENTRY, False),
        ("hr", Action.LEAVE_VIEW_ALL, True),
        ("hr", Action.LEAVE_ALLOCATE, True),
        ("hr", Action.LEAVE_DECIDE, False),
        ("admin", Action.LEAVE_DECIDE, True),
        ("admin", Action.LEAVE_CANCEL_ANY, True),
        ("admin", Action.LEAVE_TYPE_MANAGE, True),
        ("intern", Action.TIME_TRACK, False),
    ],
)
def test_capability_table(role, action, allowed):
    assert is_allowed(role, action) is allowed


def test_ensure_allowed_raises_forbidden():
    ensure_allowed("admin", Action.LEAVE_DECIDE)
    with pytest.raises(Forbidden) as excinfo:
        ensure_allowed("employee", Action.LEAVE_DECIDE)
    assert excinfo.value.status_code == 403
    assert "leave.decide" in excinfo.value.detail
