from datetime import date
from types import SimpleNamespace

import pytest
from fastapi import Response
from fastapi.security import HTTPAuthorizationCredentials

from app.api import deps
from app.api.v1 import achievements as achievement_routes
from app.api.v1 import auth as auth_routes
from app.api.v1 import users as user_routes
from app.core.exceptions import AuthenticationError, AuthorizationError, InvalidCredentialsError
from app.models.enums import UserRole
from app.schemas.achievement import AchievementCreate
from app.schemas.user import RefreshTokenRequest, UserLogin, UserProfileUpdate, UserRegister


@pytest.fixture
def wired(monkeypatch, sessions, workflow):
    monkeypatch.setattr(auth_routes, "session_manager", sessions)
    monkeypatch.setattr(deps, "session_manager", sessions)
    monkeypatch.setattr(deps, "user_service", sessions.users)
    monkeypatch.setattr(auth_routes, "user_service", sessions.users)
    monkeypatch.setattr(user_routes, "user_service", sessions.users)
    monkeypatch.setattr(achievement_routes, "achievement_workflow", workflow)
    return sessions


def _request(host="10.1.2.3", agent="pytest-client"):
    return SimpleNamespace(client=SimpleNamespace(host=host), headers={"user-agent": agent})


def _bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_login_refresh_and_sessions(db, wired, make_user):
    make_user(email="ana@example.com")

    login = auth_routes.login(UserLogin(email="Ana@Example.com", password="password123"), _request(), db=db)
    assert login.token_type == "Bearer"
    assert login.expires_in == 900
    assert login.user.email == "ana@example.com"

    rotated = auth_routes.refresh_token(
        RefreshTokenRequest(refresh_token=login.refresh_token), _request(agent="phone"), db=db
    )
    assert rotated.refresh_token != login.refresh_token

    listed = auth_routes.list_sessions(token=rotated.access_token, db=db)
    assert listed.total == 1
    assert listed.active_tokens[0].user_agent == "phone"
    assert listed.active_tokens[0].ip_address == "10.1.2.3"


def test_logout_warns_when_nothing_was_revoked(db, wired, make_user):
    make_user(email="ana@example.com")
    login = auth_routes.login(UserLogin(email="ana@example.com", password="password123"), _request(), db=db)

    response = Response()
    body = auth_routes.logout(response, credentials=None, db=db)
    assert body["success"] is True
    assert "X-Warning" in response.headers

    response = Response()
    body = auth_routes.logout(response, credentials=_bearer(login.access_token), db=db)
    assert body["refresh_tokens_revoked"] is True
    assert "X-Warning" not in response.headers


def test_dependencies_resolve_identity_and_roles(db, wired, make_user):
    make_user(email="ana@example.com")
    login = auth_routes.login(UserLogin(email="ana@example.com", password="password123"), _request(), db=db)

    with pytest.raises(AuthenticationError):
        deps.get_access_token(None)
    token = deps.get_access_token(_bearer(login.access_token))
    identity = deps.get_current_identity(token)
    assert identity.role == UserRole.STUDENT

    assert deps.require_student(identity) is identity
    with pytest.raises(AuthorizationError):
        deps.require_reviewer(identity)
    with pytest.raises(AuthorizationError):
        deps.require_admin(identity)
    with pytest.raises(AuthenticationError):
        deps.get_current_identity(login.refresh_token)


def test_achievement_routes_delegate_to_workflow(db, wired, make_user, as_identity):
    student = as_identity(make_user())
    advisor = as_identity(make_user(role=UserRole.ADVISOR))

    created = achievement_routes.create_achievement(
        AchievementCreate(
            title="Debate champion",
            description="Won the state final",
            category="debate",
            achievement_date=date(2026, 2, 1),
        ),
        identity=student,
        db=db,
    )
    achievement_routes.submit_achievement(created.id, identity=student, db=db)

    pending = achievement_routes.list_pending(identity=advisor, db=db)
    assert [a.id for a in pending] == [created.id]

    verified = achievement_routes.verify_achievement(created.id, identity=advisor, db=db)
    assert verified.status == "verified"

    everything = achievement_routes.list_achievements(status_filter=None, owner_id=None, identity=advisor, db=db)
    assert [a.id for a in everything] == [created.id]


def test_register_then_log_in(db, wired):
    created = auth_routes.register(
        UserRegister(name="Rui", email="Rui@Example.com", password="password123", student_number="S-3001"),
        db=db,
    )
    assert created.role == "student"
    assert created.email == "rui@example.com"

    login = auth_routes.login(UserLogin(email="rui@example.com", password="password123"), _request(), db=db)
    assert login.user.id == created.id


def test_profile_update_and_advisor_listing(db, wired, make_user, as_identity):
    student = make_user(email="ana@example.com")
    advisor = make_user(role=UserRole.ADVISOR, name="Bruno")

    updated = user_routes.update_my_profile(UserProfileUpdate(name="Ana Lima"), current_user=student, db=db)
    assert updated.name == "Ana Lima"

    advisors = user_routes.get_available_advisors(identity=as_identity(student), db=db)
    assert [a.id for a in advisors] == [advisor.id]


def test_admin_soft_deletes_a_user(db, wired, make_user, as_identity):
    student = make_user(email="ana@example.com")
    admin = as_identity(make_user(role=UserRole.ADMIN))

    body = user_routes.delete_user(student.id, identity=admin, db=db)
    assert body.success is True

    with pytest.raises(InvalidCredentialsError):
        auth_routes.login(UserLogin(email="ana@example.com", password="password123"), _request(), db=db)
