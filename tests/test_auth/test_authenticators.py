"""Tests for the lease, static-key and bearer-login authenticators."""

from __future__ import annotations

import json
from datetime import timedelta

import httpx
import pytest

from keyway.auth.bearer import DEFAULT_TOKEN_LIFETIME, BearerLoginAuthenticator
from keyway.auth.lease import TOKEN_HEADER, LeaseAuthenticator
from keyway.auth.static_key import StaticKeyAuthenticator
from keyway.exceptions import AuthError, AuthFailure
from keyway.models import BackendKind, Credential, Endpoint, LoginCredentials

VAULT = Endpoint(base_url="https://vault.example.com:8200", backend=BackendKind.VAULT)
SENSU = Endpoint(base_url="https://sensu.example.com:8080", backend=BackendKind.SENSU)
GITLAB = Endpoint(base_url="https://gitlab.example.com/api/v4", backend=BackendKind.GITLAB)

USER_PASS = LoginCredentials(username="alice", password="pw")

LOGIN_PATH = "/v1/auth/ldap/login/alice"
RENEW_PATH = "/v1/auth/token/renew-self"


def _vault_auth(token: str = "s.1", lease: int = 10, renewable: bool = True) -> dict:
    return {
        "auth": {
            "client_token": token,
            "accessor": "acc-1",
            "lease_duration": lease,
            "renewable": renewable,
            "policies": ["default"],
        }
    }


# ---------------------------------------------------------------------------
# Lease
# ---------------------------------------------------------------------------


class TestLeaseAuthenticate:
    @pytest.mark.asyncio
    async def test_user_pass_login(self, router, clock) -> None:
        router.add("POST", LOGIN_PATH, httpx.Response(200, json=_vault_auth()))
        auth = LeaseAuthenticator(VAULT, clock=clock)

        credential = await auth.authenticate(USER_PASS, router.transport())

        assert credential.token == "s.1"
        assert credential.issued_at == clock()
        assert credential.expires_at == clock() + timedelta(seconds=10)
        assert credential.renewable
        assert credential.lease_id == "acc-1"
        assert credential.metadata == {"policies": ["default"]}
        assert json.loads(router.requests[0].content) == {"password": "pw"}

    @pytest.mark.asyncio
    async def test_passcode_is_sent(self, router, clock) -> None:
        router.add("POST", LOGIN_PATH, httpx.Response(200, json=_vault_auth()))
        auth = LeaseAuthenticator(VAULT, clock=clock)

        await auth.authenticate(
            LoginCredentials(username="alice", password="pw", passcode="123456"),
            router.transport(),
        )

        assert json.loads(router.requests[0].content) == {"password": "pw", "passcode": "123456"}

    @pytest.mark.asyncio
    async def test_login_method_selects_mount(self, router, clock) -> None:
        router.add("POST", "/v1/auth/userpass/login/alice", httpx.Response(200, json=_vault_auth()))
        auth = LeaseAuthenticator(VAULT, login_method="userpass", clock=clock)

        credential = await auth.authenticate(USER_PASS, router.transport())
        assert credential.token == "s.1"

    @pytest.mark.asyncio
    async def test_refused_login_is_bad_credentials(self, router, clock) -> None:
        router.add(
            "POST",
            LOGIN_PATH,
            httpx.Response(400, json={"errors": ["invalid username or password"]}),
        )
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(USER_PASS, router.transport())
        assert exc_info.value.reason is AuthFailure.BAD_CREDENTIALS
        assert exc_info.value.status == 400
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, router, clock) -> None:
        router.add("POST", LOGIN_PATH, httpx.Response(503, text="sealed"))
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(USER_PASS, router.transport())
        assert exc_info.value.reason is AuthFailure.UNAVAILABLE
        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_network_failure_is_unavailable(self, router, clock) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        router.add("POST", LOGIN_PATH, refuse)
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(USER_PASS, router.transport())
        assert exc_info.value.reason is AuthFailure.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_missing_token_is_rejected(self, router, clock) -> None:
        router.add("POST", LOGIN_PATH, httpx.Response(200, json={"auth": None}))
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError, match="Could not retrieve auth token"):
            await auth.authenticate(USER_PASS, router.transport())

    @pytest.mark.asyncio
    async def test_no_credentials_sends_nothing(self, router, clock) -> None:
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(LoginCredentials(), router.transport())
        assert exc_info.value.reason is AuthFailure.BAD_CREDENTIALS
        assert router.requests == []

    @pytest.mark.asyncio
    async def test_pre_issued_token_is_looked_up(self, router, clock) -> None:
        router.add(
            "GET",
            "/v1/auth/token/lookup-self",
            httpx.Response(
                200,
                json={"data": {"ttl": 3600, "renewable": True, "accessor": "acc-9", "policies": []}},
            ),
        )
        auth = LeaseAuthenticator(VAULT, clock=clock)

        credential = await auth.authenticate(LoginCredentials(api_key="s.given"), router.transport())

        assert credential.token == "s.given"
        assert credential.expires_at == clock() + timedelta(seconds=3600)
        assert credential.renewable
        assert router.requests[0].headers[TOKEN_HEADER] == "s.given"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "username, raw_path",
        [
            ("John Smith", b"/v1/auth/ldap/login/John%20Smith"),
            ("ops/alice", b"/v1/auth/ldap/login/ops%2Falice"),
        ],
    )
    async def test_username_is_escaped(
        self, router, clock, username: str, raw_path: bytes
    ) -> None:
        router.add(
            "POST", f"/v1/auth/ldap/login/{username}", httpx.Response(200, json=_vault_auth())
        )
        auth = LeaseAuthenticator(VAULT, clock=clock)

        credential = await auth.authenticate(
            LoginCredentials(username=username, password="pw"), router.transport()
        )

        assert credential.token == "s.1"
        assert router.requests[0].url.raw_path == raw_path

    @pytest.mark.asyncio
    async def test_non_numeric_lease_is_rejected(self, router, clock) -> None:
        router.add(
            "POST",
            LOGIN_PATH,
            httpx.Response(200, json={"auth": {"client_token": "s.1", "lease_duration": "10s"}}),
        )
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError, match="lease_duration") as exc_info:
            await auth.authenticate(USER_PASS, router.transport())
        assert exc_info.value.reason is AuthFailure.REJECTED

    @pytest.mark.asyncio
    async def test_non_numeric_ttl_is_rejected(self, router, clock) -> None:
        router.add(
            "GET",
            "/v1/auth/token/lookup-self",
            httpx.Response(200, json={"data": {"ttl": [3600], "renewable": True}}),
        )
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError, match="ttl") as exc_info:
            await auth.authenticate(LoginCredentials(api_key="s.given"), router.transport())
        assert exc_info.value.reason is AuthFailure.REJECTED


class TestLeaseRenew:
    def _credential(self, clock, renewable: bool = True) -> Credential:
        return Credential(
            token="s.1",
            issued_at=clock(),
            expires_at=clock() + timedelta(seconds=10),
            renewable=renewable,
        )

    def test_supports_renewal(self) -> None:
        assert LeaseAuthenticator(VAULT).supports_renewal()

    @pytest.mark.asyncio
    async def test_renew_extends_the_same_token(self, router, clock) -> None:
        router.add(
            "POST", RENEW_PATH, httpx.Response(200, json=_vault_auth(token="s.1", lease=20))
        )
        auth = LeaseAuthenticator(VAULT, clock=clock)
        previous = self._credential(clock)
        clock.advance(8)

        renewed = await auth.renew(previous, router.transport())

        assert renewed.token == "s.1"
        assert renewed.expires_at == clock() + timedelta(seconds=20)
        assert router.requests[0].headers[TOKEN_HEADER] == "s.1"

    @pytest.mark.asyncio
    async def test_non_renewable_flag_skips_exchange(self, router, clock) -> None:
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.renew(self._credential(clock, renewable=False), router.transport())
        assert exc_info.value.reason is AuthFailure.NOT_RENEWABLE
        assert router.requests == []

    @pytest.mark.asyncio
    async def test_refused_renewal_is_not_renewable(self, router, clock) -> None:
        router.add("POST", RENEW_PATH, httpx.Response(403, json={"errors": ["permission denied"]}))
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.renew(self._credential(clock), router.transport())
        assert exc_info.value.reason is AuthFailure.NOT_RENEWABLE

    @pytest.mark.asyncio
    async def test_zero_lease_is_not_renewable(self, router, clock) -> None:
        router.add("POST", RENEW_PATH, httpx.Response(200, json=_vault_auth(lease=0)))
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError, match="no further time") as exc_info:
            await auth.renew(self._credential(clock), router.transport())
        assert exc_info.value.reason is AuthFailure.NOT_RENEWABLE

    @pytest.mark.asyncio
    async def test_unavailable_during_renewal(self, router, clock) -> None:
        router.add("POST", RENEW_PATH, httpx.Response(500, json={"errors": ["internal"]}))
        auth = LeaseAuthenticator(VAULT, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.renew(self._credential(clock), router.transport())
        assert exc_info.value.reason is AuthFailure.UNAVAILABLE


class TestLeaseApply:
    def test_token_header(self) -> None:
        result = LeaseAuthenticator(VAULT).apply(Credential(token="s.1"))
        assert result.headers == {TOKEN_HEADER: "s.1"}

    def test_no_credential(self) -> None:
        result = LeaseAuthenticator(VAULT).apply(None)
        assert result.headers == {}


# ---------------------------------------------------------------------------
# Static key
# ---------------------------------------------------------------------------


class TestStaticKey:
    @pytest.mark.asyncio
    async def test_key_never_expires(self, router, clock) -> None:
        auth = StaticKeyAuthenticator(SENSU, clock=clock)

        credential = await auth.authenticate(LoginCredentials(api_key="k-123"), router.transport())

        assert credential.token == "k-123"
        assert credential.expires_at is None
        assert router.requests == []

    @pytest.mark.asyncio
    async def test_no_key_is_anonymous(self, router, clock) -> None:
        auth = StaticKeyAuthenticator(SENSU, clock=clock)

        credential = await auth.authenticate(LoginCredentials(), router.transport())

        assert credential.token == ""
        assert credential.metadata == {"anonymous": True}
        assert auth.apply(credential).headers == {}

    @pytest.mark.asyncio
    async def test_user_pass_is_bad_credentials(self, router, clock) -> None:
        auth = StaticKeyAuthenticator(SENSU, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(USER_PASS, router.transport())
        assert exc_info.value.reason is AuthFailure.BAD_CREDENTIALS

    @pytest.mark.asyncio
    async def test_cannot_renew(self, router) -> None:
        auth = StaticKeyAuthenticator(SENSU)
        assert not auth.supports_renewal()

        with pytest.raises(AuthError) as exc_info:
            await auth.renew(Credential(token="k"), router.transport())
        assert exc_info.value.reason is AuthFailure.NOT_RENEWABLE

    def test_apply_uses_key_scheme(self) -> None:
        result = StaticKeyAuthenticator(SENSU).apply(Credential(token="k-123"))
        assert result.headers == {"Authorization": "Key k-123"}

    def test_apply_bare_key_in_custom_header(self) -> None:
        auth = StaticKeyAuthenticator(SENSU)
        auth.header = "X-API-Key"
        auth.scheme = None

        assert auth.apply(Credential(token="k-123")).headers == {"X-API-Key": "k-123"}


# ---------------------------------------------------------------------------
# Bearer login
# ---------------------------------------------------------------------------


class TestBearerLogin:
    def test_token_url_uses_origin(self) -> None:
        auth = BearerLoginAuthenticator(GITLAB)
        assert auth.token_url == "https://gitlab.example.com/oauth/token"

    @pytest.mark.asyncio
    async def test_password_grant(self, router, clock) -> None:
        router.add(
            "POST",
            "/oauth/token",
            httpx.Response(200, json={"access_token": "glt-1", "expires_in": 7200}),
        )
        auth = BearerLoginAuthenticator(GITLAB, clock=clock)

        credential = await auth.authenticate(USER_PASS, router.transport())

        assert credential.token == "glt-1"
        assert credential.expires_at == clock() + timedelta(seconds=7200)
        assert not credential.renewable
        assert json.loads(router.requests[0].content) == {
            "grant_type": "password",
            "username": "alice",
            "password": "pw",
        }

    @pytest.mark.asyncio
    async def test_default_lifetime(self, router, clock) -> None:
        router.add("POST", "/oauth/token", httpx.Response(200, json={"access_token": "glt-1"}))
        auth = BearerLoginAuthenticator(GITLAB, clock=clock)

        credential = await auth.authenticate(USER_PASS, router.transport())
        assert credential.expires_at == clock() + timedelta(seconds=DEFAULT_TOKEN_LIFETIME)

    @pytest.mark.asyncio
    async def test_refused_grant(self, router, clock) -> None:
        router.add(
            "POST",
            "/oauth/token",
            httpx.Response(401, json={"error": "invalid_grant"}),
        )
        auth = BearerLoginAuthenticator(GITLAB, clock=clock)

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(USER_PASS, router.transport())
        assert exc_info.value.reason is AuthFailure.BAD_CREDENTIALS

    @pytest.mark.asyncio
    async def test_missing_access_token(self, router, clock) -> None:
        router.add("POST", "/oauth/token", httpx.Response(200, json={"token_type": "bearer"}))
        auth = BearerLoginAuthenticator(GITLAB, clock=clock)

        with pytest.raises(AuthError, match="Could not log in"):
            await auth.authenticate(USER_PASS, router.transport())

    @pytest.mark.asyncio
    async def test_personal_access_token(self, router, clock) -> None:
        auth = BearerLoginAuthenticator(GITLAB, clock=clock)

        credential = await auth.authenticate(LoginCredentials(api_key="glpat-x"), router.transport())

        assert credential.token == "glpat-x"
        assert credential.expires_at is None
        assert router.requests == []

    @pytest.mark.asyncio
    async def test_non_numeric_lifetime_is_rejected(self, router, clock) -> None:
        router.add(
            "POST",
            "/oauth/token",
            httpx.Response(200, json={"access_token": "glt-1", "expires_in": "soon"}),
        )
        auth = BearerLoginAuthenticator(GITLAB, clock=clock)

        with pytest.raises(AuthError, match="expires_in") as exc_info:
            await auth.authenticate(USER_PASS, router.transport())
        assert exc_info.value.reason is AuthFailure.REJECTED

    def test_apply_bearer_header(self) -> None:
        result = BearerLoginAuthenticator(GITLAB).apply(Credential(token="glt-1"))
        assert result.headers == {"Authorization": "Bearer glt-1"}
