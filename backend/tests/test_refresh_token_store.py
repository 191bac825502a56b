from datetime import timedelta

import pytest

from app.core.exceptions import (
    PersistenceError,
    RefreshTokenExpiredError,
    RefreshTokenNotFoundError,
    RefreshTokenRevokedError,
)
from app.core.security import hash_token
from app.models.security import RefreshToken


def _store(token_store, db, clock, user_id, raw="raw-token", **kwargs):
    return token_store.store(
        db,
        user_id=user_id,
        token_hash=hash_token(raw),
        expires_at=clock.now + timedelta(days=7),
        **kwargs,
    )


def test_store_and_find_valid(db, token_store, clock, make_user):
    user = make_user()
    record_id = _store(token_store, db, clock, user.id, ip_address="10.0.0.1", user_agent="pytest")

    record = token_store.find_valid(db, hash_token("raw-token"), user.id)
    assert record.id == record_id
    assert record.is_revoked is False
    assert record.created_at == clock.now
    assert record.ip_address == "10.0.0.1"


def test_find_valid_distinguishes_failure_kinds(db, token_store, clock, make_user):
    user = make_user()
    other = make_user()
    record_id = _store(token_store, db, clock, user.id)

    with pytest.raises(RefreshTokenNotFoundError):
        token_store.find_valid(db, hash_token("unknown"), user.id)
    with pytest.raises(RefreshTokenNotFoundError):
        token_store.find_valid(db, hash_token("raw-token"), other.id)

    token_store.revoke(db, record_id)
    with pytest.raises(RefreshTokenRevokedError):
        token_store.find_valid(db, hash_token("raw-token"), user.id)


def test_find_valid_rejects_expired_record(db, token_store, clock, make_user):
    user = make_user()
    _store(token_store, db, clock, user.id)
    clock.advance(days=7)
    with pytest.raises(RefreshTokenExpiredError):
        token_store.find_valid(db, hash_token("raw-token"), user.id)


def test_revoke_reports_only_the_first_transition(db, token_store, clock, make_user):
    user = make_user()
    record_id = _store(token_store, db, clock, user.id)

    assert token_store.revoke(db, record_id) is True
    assert token_store.revoke(db, record_id) is False
    assert token_store.revoke(db, 99999) is False

    record = db.get(RefreshToken, record_id)
    db.refresh(record)
    assert record.is_revoked is True
    assert record.revoked_at == clock.now


def test_revoke_all_for_user_leaves_other_users_alone(db, token_store, clock, make_user):
    user = make_user()
    other = make_user()
    _store(token_store, db, clock, user.id, raw="a")
    _store(token_store, db, clock, user.id, raw="b")
    _store(token_store, db, clock, other.id, raw="c")

    assert token_store.revoke_all_for_user(db, user.id) == 2
    assert token_store.revoke_all_for_user(db, user.id) == 0
    assert token_store.find_valid(db, hash_token("c"), other.id)


def test_touch_updates_last_use_and_keeps_unset_metadata(db, token_store, clock, make_user):
    user = make_user()
    record_id = _store(token_store, db, clock, user.id, ip_address="10.0.0.1", user_agent="first")
    clock.advance(hours=2)

    token_store.touch(db, record_id, user_agent="second")

    record = token_store.find_valid(db, hash_token("raw-token"), user.id)
    assert record.last_used_at == clock.now
    assert record.ip_address == "10.0.0.1"
    assert record.user_agent == "second"


def test_list_active_is_newest_first_and_skips_unusable(db, token_store, clock, make_user):
    user = make_user()
    old_id = _store(token_store, db, clock, user.id, raw="old")
    clock.advance(minutes=5)
    revoked_id = _store(token_store, db, clock, user.id, raw="revoked")
    clock.advance(minutes=5)
    new_id = _store(token_store, db, clock, user.id, raw="new")
    token_store.revoke(db, revoked_id)

    assert [r.id for r in token_store.list_active(db, user.id)] == [new_id, old_id]

    clock.advance(days=7, minutes=-7)
    assert [r.id for r in token_store.list_active(db, user.id)] == [new_id]


def test_sweep_deletes_only_expired_records(db, token_store, clock, make_user):
    user = make_user()
    _store(token_store, db, clock, user.id, raw="expiring")
    clock.advance(days=1)
    keep_id = _store(token_store, db, clock, user.id, raw="fresh")
    clock.advance(days=6, seconds=1)

    assert token_store.sweep(db) == 1
    assert [r.id for r in db.query(RefreshToken).all()] == [keep_id]
    assert token_store.sweep(db) == 0


def test_duplicate_hash_surfaces_as_persistence_error(db, token_store, clock, make_user):
    user = make_user()
    _store(token_store, db, clock, user.id)
    with pytest.raises(PersistenceError):
        _store(token_store, db, clock, user.id)

    # Session is still usable after the failed insert
    assert token_store.find_valid(db, hash_token("raw-token"), user.id)


def test_oversized_client_metadata_is_cut_to_column_width(db, token_store, clock, make_user):
    user = make_user()
    record_id = _store(
        token_store, db, clock, user.id, ip_address="1" * 200, user_agent="Mozilla/5.0 " + "x" * 2000
    )

    record = db.get(RefreshToken, record_id)
    assert len(record.ip_address) == 64
    assert len(record.user_agent) == 512
    assert record.user_agent.startswith("Mozilla/5.0 ")

    token_store.touch(db, record_id, ip_address="2" * 100, user_agent="y" * 600)
    db.expire_all()
    record = db.get(RefreshToken, record_id)
    assert record.ip_address == "2" * 64
    assert record.user_agent == "y" * 512
