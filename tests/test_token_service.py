"""
@description 文件访问令牌服务测试
@responsibility 验证签发、校验以及过期、签名错误、声明缺失的拒绝
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.core.config import TokenConfig
from app.core.exceptions import TokenInvalidError
from app.services.token_service import CapabilityTokenService

SECRET = "test-secret-0123456789abcdef0123456789"
OTHER_SECRET = "other-secret-0123456789abcdef012345678"


@pytest.fixture
def service():
    return CapabilityTokenService(SECRET)


class TestIssueVerify:
    def test_round_trip(self, service):
        """签发后立即校验得到相同的 hash 和路径"""
        issued = service.issue("abc123", "Foo/a.mkv")

        claims = service.verify(issued.token)

        assert claims.hash_string == "abc123"
        assert claims.file_path == "Foo/a.mkv"
        assert claims.token_id

    def test_expiry_window_24h(self):
        now = datetime(2026, 10, 18, 8, 0, 0, tzinfo=timezone.utc)
        service = CapabilityTokenService(SECRET, clock=lambda: now)

        issued = service.issue("abc123", "Foo")

        assert issued.expires_at == now + timedelta(hours=24)
        payload = jwt.decode(issued.token, options={"verify_signature": False})
        assert payload["exp"] - payload["iat"] == 24 * 3600
        assert "owner" not in payload and "sub" not in payload

    def test_from_config(self):
        config = TokenConfig(secret=SECRET, ttl_hours=2)
        service = CapabilityTokenService.from_config(config)

        issued = service.issue("abc123", "Foo")
        remaining = issued.expires_at - datetime.now(timezone.utc)

        assert timedelta(hours=1, minutes=59) < remaining <= timedelta(hours=2)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            CapabilityTokenService("")


class TestVerifyRejects:
    def test_expired(self):
        """过期令牌即使签名有效也被拒绝"""
        past = datetime.now(timezone.utc) - timedelta(hours=25)
        issuer = CapabilityTokenService(SECRET, clock=lambda: past)
        issued = issuer.issue("abc123", "Foo")

        with pytest.raises(TokenInvalidError) as exc_info:
            CapabilityTokenService(SECRET).verify(issued.token)

        assert exc_info.value.reason == "expired"

    def test_expiry_uses_injected_clock(self):
        """过期判断使用注入的时钟而不是系统时间"""
        issued_at = datetime(2026, 10, 18, 8, 0, 0, tzinfo=timezone.utc)
        token = CapabilityTokenService(SECRET, clock=lambda: issued_at).issue("abc123", "Foo").token

        within = CapabilityTokenService(SECRET, clock=lambda: issued_at + timedelta(hours=23))
        assert within.verify(token).file_path == "Foo"

        later = CapabilityTokenService(SECRET, clock=lambda: issued_at + timedelta(hours=25))
        with pytest.raises(TokenInvalidError) as exc_info:
            later.verify(token)

        assert exc_info.value.reason == "expired"

    def test_non_numeric_expiry(self, service):
        token = jwt.encode(
            {"hashString": "abc123", "filePath": "Foo", "iat": 0, "exp": "never"},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(TokenInvalidError) as exc_info:
            service.verify(token)

        assert exc_info.value.reason == "malformed"

    def test_wrong_secret(self, service):
        token = CapabilityTokenService(OTHER_SECRET).issue("abc123", "Foo").token

        with pytest.raises(TokenInvalidError) as exc_info:
            service.verify(token)

        assert exc_info.value.reason == "signature"

    def test_tampered_payload(self, service):
        token = service.issue("abc123", "Foo").token
        header, _, signature = token.split(".")
        forged = jwt.encode(
            {"hashString": "other", "filePath": "Foo", "iat": 0, "exp": 9999999999},
            OTHER_SECRET,
            algorithm="HS256",
        ).split(".")[1]

        with pytest.raises(TokenInvalidError):
            service.verify(f"{header}.{forged}.{signature}")

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
    def test_malformed(self, service, token):
        with pytest.raises(TokenInvalidError) as exc_info:
            service.verify(token)

        assert exc_info.value.reason == "malformed"

    def test_missing_file_path(self, service):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {"hashString": "abc123", "iat": now, "exp": now + 60}, SECRET, algorithm="HS256"
        )

        with pytest.raises(TokenInvalidError) as exc_info:
            service.verify(token)

        assert exc_info.value.reason == "missing_claims"

    def test_missing_expiry(self, service):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {"hashString": "abc123", "filePath": "Foo", "iat": now}, SECRET, algorithm="HS256"
        )

        with pytest.raises(TokenInvalidError) as exc_info:
            service.verify(token)

        assert exc_info.value.reason == "missing_claims"

    def test_empty_hash_claim(self, service):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {"hashString": "", "filePath": "Foo", "iat": now, "exp": now + 60},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(TokenInvalidError) as exc_info:
            service.verify(token)

        assert exc_info.value.reason == "missing_claims"
