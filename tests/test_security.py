import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from giftdraw.db.models import AdminCredential, Base
from giftdraw.services import security


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)()


def test_admin_not_configured_by_default():
    session = create_session()
    assert not security.is_admin_configured(session)
    assert not security.verify_admin_password(session, "secret")


def test_setup_and_verify_admin_password():
    session = create_session()
    security.setup_admin_password(session, "secret", "secret")
    session.commit()

    credential = session.query(AdminCredential).one()
    assert credential.password_hash != "secret"
    assert security.is_admin_configured(session)
    assert security.verify_admin_password(session, "secret")
    assert not security.verify_admin_password(session, "Secret")
    assert not security.verify_admin_password(session, "")


def test_setup_rejects_short_password():
    session = create_session()
    with pytest.raises(security.AdminAuthError):
        security.setup_admin_password(session, "abc", "abc")
    with pytest.raises(security.AdminAuthError):
        security.setup_admin_password(session, "abcdef", "abcdef", min_length=8)


def test_setup_rejects_mismatched_confirmation():
    session = create_session()
    with pytest.raises(security.AdminAuthError):
        security.setup_admin_password(session, "secret", "secreT")
    assert not security.is_admin_configured(session)


def test_setup_refuses_to_overwrite():
    session = create_session()
    security.setup_admin_password(session, "secret", "secret")
    with pytest.raises(security.AdminAuthError):
        security.setup_admin_password(session, "another", "another")
    assert security.verify_admin_password(session, "secret")


def test_generated_identifiers_are_unique():
    session_ids = {security.generate_session_id() for _ in range(50)}
    admin_keys = {security.generate_admin_key() for _ in range(50)}
    assert len(session_ids) == 50
    assert len(admin_keys) == 50
    assert all(session_id.startswith("session_") for session_id in session_ids)
    assert all("-" not in s and "_" not in s[len("session_"):] for s in session_ids)


def test_keys_match():
    assert security.keys_match("abc", "abc")
    assert not security.keys_match("abc", "abd")
    assert not security.keys_match("abc", "abcd")
