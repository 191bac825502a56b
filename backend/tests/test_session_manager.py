import pytest

from app.core.exceptions import (
    AccountInactiveError,
    AuthenticationError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    PersistenceError,
    WrongTokenTypeError,
)
from app.core.security import hash_token
from app.models.enums import UserRole
from app.models.security import RefreshToken


def test_login_issues_and_persists_a_pair(db, sessions, token_store, make_user, clock):
    user = make_user(email="ana@example.com")

    logged_in, pair = sessions.login(db, "ANA@example.com ", "password123", "10.0.0.5", "pytest")

    assert logged_in.id == user.id
    assert pair.expires_in == 900
    record = token_store.find_valid(db, hash_token(pair.refresh_token), user.id)
    assert record.ip_address == "10.0.0.5"
    assert record.user_agent == "pytest"
    assert logged_in.last_login == clock.now
    assert sessions.authenticate(pair.access_token).user_id == user.id


def test_login_does_not_reveal_which_part_was_wrong(db, sessions, make_user):
    make_user(email="ana@example.com")
    with pytest.raises(InvalidCredentialsError) as unknown:
        sessions.login(db, "nobody@example.com", "password123")
    with pytest.raises(InvalidCredentialsError) as wrong:
        sessions.login(db, "ana@example.com", "not-the-password")
    assert unknown.value.message == wrong.value.message


def test_unknown_email_still_runs_a_password_check(db, sessions, hasher, make_user, monkeypatch):
    make_user(email="ana@example.com")
    checked = []
    real_matches = hasher.matches

    def counting_matches(password, hashed_password):
        checked.append(password)
        return real_matches(password, hashed_password)

    monkeypatch.setattr(hasher, "matches", counting_matches)

    with pytest.raises(InvalidCredentialsError):
        sessions.login(db, "nobody@example.com", "password123")
    with pytest.raises(InvalidCredentialsError):
        sessions.login(db, "ghost@example.com", "password123")
    with pytest.raises(InvalidCredentialsError):
        sessions.login(db, "ana@example.com", "not-the-password")

    assert checked == ["password123", "password123", "not-the-password"]


def test_login_on_inactive_account(db, sessions, make_user):
    user = make_user(email="ana@example.com")
    user.is_active = False
    db.commit()

    with pytest.raises(AccountInactiveError):
        sessions.login(db, "ana@example.com", "password123")
    with pytest.raises(InvalidCredentialsError):
        sessions.login(db, "ana@example.com", "wrong-password")


def test_login_returns_nothing_when_the_record_cannot_be_stored(db, sessions, token_store, make_user, monkeypatch):
    make_user(email="ana@example.com")

    def failing_store(*args, **kwargs):
        raise PersistenceError("Failed to store refresh token")

    monkeypatch.setattr(token_store, "store", failing_store)
    with pytest.raises(PersistenceError):
        sessions.login(db, "ana@example.com", "password123")


def test_refresh_rotates_and_retires_the_presented_token(db, sessions, token_store, make_user, clock):
    user = make_user(email="ana@example.com")
    _, first = sessions.login(db, "ana@example.com", "password123")
    clock.advance(minutes=20)

    second = sessions.refresh(db, first.refresh_token, "10.0.0.9", "phone")

    assert second.refresh_token != first.refresh_token
    assert sessions.authenticate(second.access_token).user_id == user.id
    old = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(first.refresh_token)).one()
    assert old.is_revoked is True
    assert old.last_used_at == clock.now
    assert token_store.find_valid(db, hash_token(second.refresh_token), user.id)

    with pytest.raises(InvalidRefreshTokenError):
        sessions.refresh(db, first.refresh_token)


def test_refresh_failures_collapse_to_one_error(db, sessions, make_user, clock):
    make_user(email="ana@example.com")
    _, pair = sessions.login(db, "ana@example.com", "password123")

    with pytest.raises(InvalidRefreshTokenError):
        sessions.refresh(db, pair.access_token)
    with pytest.raises(InvalidRefreshTokenError):
        sessions.refresh(db, "garbage")

    clock.advance(days=7)
    with pytest.raises(InvalidRefreshTokenError):
        sessions.refresh(db, pair.refresh_token)


def test_refresh_refused_once_account_is_disabled(db, sessions, make_user):
    user = make_user(email="ana@example.com")
    _, pair = sessions.login(db, "ana@example.com", "password123")
    user.is_active = False
    db.commit()

    with pytest.raises(InvalidRefreshTokenError):
        sessions.refresh(db, pair.refresh_token)


def test_concurrent_refresh_lets_exactly_one_caller_win(db, sessions, token_store, make_user, monkeypatch):
    user = make_user(email="ana@example.com")
    _, pair = sessions.login(db, "ana@example.com", "password123")

    original_find_valid = token_store.find_valid
    state = {"raced": False, "winner": None}

    def racing_find_valid(session, token_hash, user_id):
        record = original_find_valid(session, token_hash, user_id)
        if not state["raced"]:
            # A second request rotates the same token before this one revokes it
            state["raced"] = True
            state["winner"] = sessions.refresh(session, pair.refresh_token)
        return record

    monkeypatch.setattr(token_store, "find_valid", racing_find_valid)

    with pytest.raises(InvalidRefreshTokenError):
        sessions.refresh(db, pair.refresh_token)

    winner = state["winner"]
    assert winner is not None
    active = token_store.list_active(db, user.id)
    assert [r.token_hash for r in active] == [hash_token(winner.refresh_token)]


def test_logout_revokes_every_session_of_the_user(db, sessions, token_store, make_user):
    user = make_user(email="ana@example.com")
    _, laptop = sessions.login(db, "ana@example.com", "password123")
    _, phone = sessions.login(db, "ana@example.com", "password123")

    assert sessions.logout(db, laptop.access_token) is True
    assert token_store.list_active(db, user.id) == []
    with pytest.raises(InvalidRefreshTokenError):
        sessions.refresh(db, phone.refresh_token)


def test_logout_never_raises(db, sessions, make_user, clock):
    make_user(email="ana@example.com")
    _, pair = sessions.login(db, "ana@example.com", "password123")

    assert sessions.logout(db, None) is False
    assert sessions.logout(db, "garbage") is False
    clock.advance(minutes=16)
    assert sessions.logout(db, pair.access_token) is False


def test_logout_all_fails_loudly(db, sessions, make_user):
    make_user(email="ana@example.com")
    _, pair = sessions.login(db, "ana@example.com", "password123")
    sessions.login(db, "ana@example.com", "password123")

    assert sessions.logout_all(db, pair.access_token) == 2
    with pytest.raises(AuthenticationError):
        sessions.logout_all(db, "garbage")


def test_list_active_sessions_hides_hashes(db, sessions, make_user):
    make_user(email="ana@example.com")
    _, pair = sessions.login(db, "ana@example.com", "password123", "10.0.0.1", "laptop")
    sessions.login(db, "ana@example.com", "password123", "10.0.0.2", "phone")

    listed = sessions.list_active_sessions(db, pair.access_token)

    assert [s.user_agent for s in listed] == ["phone", "laptop"]
    assert all(not hasattr(s, "token_hash") for s in listed)


def test_revoke_session_revokes_only_that_token(db, sessions, token_store, make_user):
    user = make_user(email="ana@example.com")
    _, laptop = sessions.login(db, "ana@example.com", "password123")
    _, phone = sessions.login(db, "ana@example.com", "password123")

    sessions.revoke_session(db, laptop.refresh_token)

    assert [r.token_hash for r in token_store.list_active(db, user.id)] == [hash_token(phone.refresh_token)]
    with pytest.raises(InvalidRefreshTokenError):
        sessions.revoke_session(db, laptop.refresh_token)


def test_authenticate_rejects_refresh_tokens(db, sessions, make_user):
    make_user(email="ana@example.com", role=UserRole.ADVISOR)
    _, pair = sessions.login(db, "ana@example.com", "password123")

    assert sessions.authenticate(pair.access_token).role == UserRole.ADVISOR
    with pytest.raises(WrongTokenTypeError):
        sessions.authenticate(pair.refresh_token)
