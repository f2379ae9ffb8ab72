import datetime

import jwt
import pytest

from messaging_service.config import AppConfig
from messaging_service.infrastructure.security import SecurityService


@pytest.fixture
def security_service():
    config = AppConfig(SECRET_KEY="test_secret", ALGORITHM="HS256")
    return SecurityService(config)


def test_token_creation(security_service):
    access_token, expire = security_service.create_access_token("user-1")
    assert access_token
    assert expire > datetime.datetime.now(datetime.timezone.utc)


def test_token_decoding(security_service):
    access_token, _ = security_service.create_access_token("user-1")
    assert security_service.decode_access_token(access_token) == "user-1"


def test_tokens_are_unique(security_service):
    first, _ = security_service.create_access_token("user-1")
    second, _ = security_service.create_access_token("user-1")
    assert first != second


def test_expired_token(security_service):
    access_token, _ = security_service.create_access_token(
        "user-1", expires_delta=datetime.timedelta(seconds=-1)
    )
    assert security_service.decode_access_token(access_token) is None


def test_token_signed_with_other_key(security_service):
    forged = jwt.encode({"sub": "user-1"}, "other_secret", algorithm="HS256")
    assert security_service.decode_access_token(forged) is None


def test_token_without_subject(security_service):
    token = jwt.encode({"nonce": "x"}, "test_secret", algorithm="HS256")
    assert security_service.decode_access_token(token) is None


def test_invalid_token(security_service):
    assert security_service.decode_access_token("invalid_token") is None
