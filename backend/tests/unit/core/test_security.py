"""
Unit tests for caller identity and JWT helpers.
"""

from datetime import timedelta

import pytest

from clinic.core.security import (
    ROLE_ADMIN,
    ROLE_DOCTOR,
    ROLE_PATIENT,
    CallerContext,
    caller_from_token,
    create_access_token,
    create_caller_token,
    decode_access_token,
)


@pytest.mark.unit
class TestCallerContext:
    def test_roles_are_normalized(self):
        caller = CallerContext.of("sub-1", ["role_doctor", " Patient "])

        assert caller.roles == frozenset({ROLE_DOCTOR, ROLE_PATIENT})
        assert caller.has_role("DOCTOR")
        assert caller.has_role("ROLE_PATIENT")
        assert caller.is_patient
        assert not caller.is_admin

    def test_admin_flag(self):
        assert CallerContext.of("admin", [ROLE_ADMIN]).is_admin

    def test_principal_id_is_stringified(self):
        assert CallerContext.of(42).principal_id == "42"


@pytest.mark.unit
class TestTokens:
    def test_caller_round_trip_through_token(self):
        token = create_caller_token("patient-sub-1", [ROLE_PATIENT])

        caller = caller_from_token(token)

        assert caller == CallerContext.of("patient-sub-1", [ROLE_PATIENT])

    def test_single_string_role_claim(self):
        token = create_access_token({"sub": "doc", "roles": "DOCTOR"})

        assert caller_from_token(token).has_role(ROLE_DOCTOR)

    def test_token_without_subject_is_rejected(self):
        token = create_access_token({"roles": [ROLE_ADMIN]})

        assert caller_from_token(token) is None

    def test_expired_token_is_rejected(self):
        token = create_access_token({"sub": "x"}, expires_delta=timedelta(seconds=-1))

        assert decode_access_token(token) is None
        assert caller_from_token(token) is None

    def test_garbage_token_is_rejected(self):
        assert caller_from_token("not-a-jwt") is None

    def test_weak_secret_rejected_in_production(self, monkeypatch):
        monkeypatch.setenv("FLASK_ENV", "production")
        monkeypatch.setenv("JWT_SECRET_KEY", "short")

        with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
            create_caller_token("x", [])
