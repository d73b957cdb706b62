from __future__ import annotations

import pytest
from jose import jwt

from src.application.errors import AuthError, PermissionDenied
from src.domain.value_objects.role import elevated_roles_predicate
from src.infrastructure.auth.context import context_from_claims
from src.infrastructure.auth.jwt_service import JWTService


def _service(**kwargs) -> JWTService:
    return JWTService(
        secret_key="unit-secret", algorithm="HS256", access_token_expires_minutes=5, **kwargs
    )


def test_access_token_carries_numeric_id_and_role():
    service = _service()
    claims = service.decode_access(service.create_access_token(user_id=42, role="admin"))

    assert claims["id"] == 42
    assert claims["sub"] == "42"
    assert claims["role"] == "admin"


def test_tokens_without_type_claim_are_accepted():
    token = jwt.encode({"id": 7, "role": "customer"}, "unit-secret", algorithm="HS256")

    context = context_from_claims(_service().decode_access(token))

    assert context.user_id == 7
    assert context.role == "customer"


def test_refresh_tokens_are_rejected_for_access():
    token = jwt.encode({"id": 7, "typ": "refresh"}, "unit-secret", algorithm="HS256")

    with pytest.raises(AuthError):
        _service().decode_access(token)


def test_wrong_secret_or_expired_token_fails():
    foreign = jwt.encode({"id": 1}, "other-secret", algorithm="HS256")
    expired = jwt.encode({"id": 1, "exp": 1}, "unit-secret", algorithm="HS256")

    with pytest.raises(AuthError):
        _service().decode(foreign)
    with pytest.raises(AuthError, match="expired"):
        _service().decode(expired)


def test_audience_is_enforced_when_configured():
    issuing = _service(audience="mobile")
    checking = _service(audience="dashboard")

    with pytest.raises(AuthError):
        checking.decode(issuing.create_access_token(user_id=1, role="customer"))


@pytest.mark.parametrize("claims", [{}, {"id": ""}, {"id": "abc"}, {"sub": None}])
def test_context_requires_integer_user_id(claims):
    with pytest.raises(AuthError):
        context_from_claims(claims)


def test_context_defaults_role_and_checks_elevation():
    context = context_from_claims({"sub": "9"})
    is_elevated = elevated_roles_predicate({"admin", "staff"})

    assert context.role == "customer"
    assert not context.is_elevated(is_elevated)
    with pytest.raises(PermissionDenied):
        context.require_elevated(is_elevated)
    context_from_claims({"id": 9, "role": " Staff "}).require_elevated(is_elevated)
