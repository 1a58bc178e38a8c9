from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from shop.api.app import create_app
from shop.auth.config import OAuthProviderConfig, callback_url
from shop.auth.oauth import GitHubStrategy
from shop.auth.session import decode_session
from shop.auth.strategies import build_strategy_registry


class _Resp:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        return self._payload


class _FakeProvider:
    """Stands in for `requests.post` / `requests.get` against the provider APIs."""

    def __init__(
        self,
        profile: Dict[str, Any],
        token_status: int = 200,
        not_found: Tuple[str, ...] = (),
    ) -> None:
        self.profile = profile
        self.token_status = token_status
        self.not_found = not_found
        self.posts: List[Dict[str, Any]] = []
        self.gets: List[str] = []

    def post(self, url: str, data: Optional[Dict[str, Any]] = None, **_kw: Any) -> _Resp:
        self.posts.append({"url": url, "data": data})
        if self.token_status >= 400:
            return _Resp(self.token_status, {"error": "invalid_grant"})
        return _Resp(200, {"access_token": "tok-123", "token_type": "bearer"})

    def get(self, url: str, **_kw: Any) -> _Resp:
        self.gets.append(url)
        if url in self.not_found:
            return _Resp(404, {"message": "Not Found"})
        return _Resp(200, self.profile)


def _start(client, provider: str) -> str:  # type: ignore[no-untyped-def]
    r = client.get(f"/api/auth/login/{provider}", follow_redirects=False)
    assert r.status_code == 302
    return r.headers["location"]


def test_login_initiation_redirects_to_provider_with_email_scope(client) -> None:
    location = _start(client, "facebook")
    parsed = urlparse(location)
    assert parsed.netloc == "www.facebook.com"
    q = parse_qs(parsed.query)
    assert q["scope"] == ["email"]
    assert q["client_id"] == ["fb-id"]
    assert q["response_type"] == ["code"]
    assert q["redirect_uri"] == ["http://shop.test/api/auth/login/facebook"]
    assert q["state"][0]


def test_unknown_strategy_is_not_found(client) -> None:
    r = client.get("/api/auth/login/myspace", follow_redirects=False)
    assert r.status_code == 404
    # The local strategy only accepts POST credentials.
    assert client.get("/api/auth/login/local", follow_redirects=False).status_code == 404


def test_unconfigured_provider_fails_at_request_time(client) -> None:
    r = client.get("/api/auth/login/github", follow_redirects=False)
    assert r.status_code == 500
    assert r.json()["error"] == "PROVIDER_NOT_CONFIGURED"
    assert "details" not in r.json()


def test_callback_signs_user_in(client, monkeypatch, auth_cfg, users) -> None:
    fake = _FakeProvider({"id": "fb-42", "name": "Grace Hopper", "email": "grace@example.com"})
    monkeypatch.setattr("shop.auth.oauth.requests.post", fake.post)
    monkeypatch.setattr("shop.auth.oauth.requests.get", fake.get)

    state = parse_qs(urlparse(_start(client, "facebook")).query)["state"][0]
    r = client.get(f"/api/auth/login/facebook?code=abc&state={state}", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/"

    session = decode_session(auth_cfg, r.cookies.get("shop_session"))
    user = users.get_user_by_email("grace@example.com")
    assert user is not None
    assert session.user_id == user.id
    assert session.oauth_state is None
    assert fake.posts[0]["data"]["code"] == "abc"

    body = client.get("/api/auth/whoami").json()
    assert body["user"]["name"] == "Grace Hopper"


def test_callback_links_existing_local_account(client, monkeypatch, users) -> None:
    existing = users.add("grace@example.com", "pw")
    fake = _FakeProvider({"sub": "g-7", "name": "Grace", "email": "grace@example.com", "email_verified": True})
    monkeypatch.setattr("shop.auth.oauth.requests.post", fake.post)
    monkeypatch.setattr("shop.auth.oauth.requests.get", fake.get)

    state = parse_qs(urlparse(_start(client, "google")).query)["state"][0]
    client.get(f"/api/auth/login/google?code=abc&state={state}", follow_redirects=False)
    assert client.get("/api/auth/whoami").json()["user"]["id"] == existing.id
    assert len(users.users) == 1


def test_callback_with_wrong_state_is_rejected(client, monkeypatch) -> None:
    fake = _FakeProvider({"id": "fb-1"})
    monkeypatch.setattr("shop.auth.oauth.requests.post", fake.post)
    _start(client, "facebook")
    r = client.get("/api/auth/login/facebook?code=abc&state=forged", follow_redirects=False)
    assert r.status_code == 400
    assert fake.posts == []


def test_callback_without_prior_initiation_is_rejected(client) -> None:
    r = client.get("/api/auth/login/facebook?code=abc&state=x", follow_redirects=False)
    assert r.status_code == 400


def test_provider_denial_redirects_to_login(client) -> None:
    state = parse_qs(urlparse(_start(client, "facebook")).query)["state"][0]
    r = client.get(f"/api/auth/login/facebook?error=access_denied&state={state}", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/login"
    assert "user" not in client.get("/api/auth/whoami").json()


def test_token_exchange_failure_propagates(client, monkeypatch) -> None:
    fake = _FakeProvider({}, token_status=401)
    monkeypatch.setattr("shop.auth.oauth.requests.post", fake.post)
    state = parse_qs(urlparse(_start(client, "facebook")).query)["state"][0]
    r = client.get(f"/api/auth/login/facebook?code=abc&state={state}", follow_redirects=False)
    assert r.status_code == 502
    assert r.json()["error"] == "OAUTH_EXCHANGE_FAILED"
    assert r.json()["details"] == {"provider": "facebook"}


def _github_client(make_cfg, users, orders, oauth_links) -> TestClient:  # type: ignore[no-untyped-def]
    base = "http://shop.test"
    cfg = make_cfg(
        oauth_providers=(OAuthProviderConfig("github", "gh-id", "gh-secret", callback_url(base, "github")),)
    )
    registry = build_strategy_registry(cfg, users=users, oauth_links=oauth_links)
    return TestClient(create_app(cfg, users=users, orders=orders, registry=registry), raise_server_exceptions=False)


def test_github_private_email_signs_in_without_email(make_cfg, users, orders, oauth_links, monkeypatch) -> None:
    client = _github_client(make_cfg, users, orders, oauth_links)
    # Without the user:email grant GitHub answers 404 on /user/emails.
    fake = _FakeProvider(
        {"id": 7, "login": "octo", "name": None, "email": None},
        not_found=(GitHubStrategy.emails_endpoint,),
    )
    monkeypatch.setattr("shop.auth.oauth.requests.post", fake.post)
    monkeypatch.setattr("shop.auth.oauth.requests.get", fake.get)

    state = parse_qs(urlparse(_start(client, "github")).query)["state"][0]
    r = client.get(f"/api/auth/login/github?code=abc&state={state}", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/"
    assert GitHubStrategy.emails_endpoint in fake.gets

    body = client.get("/api/auth/whoami").json()
    assert body["user"]["name"] == "octo"
    assert body["user"]["email"] == "github-7@users.noreply"


def test_state_issued_for_one_provider_is_rejected_by_another(client, monkeypatch) -> None:
    fake = _FakeProvider({"sub": "g-1", "email": "x@example.com"})
    monkeypatch.setattr("shop.auth.oauth.requests.post", fake.post)
    monkeypatch.setattr("shop.auth.oauth.requests.get", fake.get)

    state = parse_qs(urlparse(_start(client, "facebook")).query)["state"][0]
    r = client.get(f"/api/auth/login/google?code=abc&state={state}", follow_redirects=False)
    assert r.status_code == 400
    assert fake.posts == []
