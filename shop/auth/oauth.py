"""
OAuth2 authorization-code login for facebook, google and github.

Each provider is a subclass of OAuthStrategy that knows its endpoints and how to turn
the provider's user payload into an OAuthProfile. The HTTP calls are blocking
(`requests`) and run in a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

import requests

from shop.auth.config import OAuthProviderConfig
from shop.auth.models import AuthFailure, AuthResult, AuthSuccess, OAuthProfile
from shop.db.oauth import OAuthLinkStore
from shop.exceptions import OAuthExchangeError, ProviderNotConfiguredError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 10
DEFAULT_SCOPE = "email"


class OAuthStrategy:
    name = ""
    authorize_endpoint = ""
    token_endpoint = ""
    profile_endpoint = ""

    def __init__(self, cfg: OAuthProviderConfig, links: OAuthLinkStore, *, scope: str = DEFAULT_SCOPE):
        self.cfg = cfg
        self.scope = scope
        self._links = links

    def _require_configured(self) -> None:
        if not self.cfg.configured:
            raise ProviderNotConfiguredError(self.name)

    def authorize_url(self, state: str) -> str:
        self._require_configured()
        params = {
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.callback_url,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        self._require_configured()
        payload = {
            "client_id": self.cfg.client_id,
            "client_secret": self.cfg.client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.cfg.callback_url,
        }
        r = requests.post(
            self.token_endpoint,
            data=payload,
            headers={"Accept": "application/json"},
            timeout=HTTP_TIMEOUT_SECONDS,
        )
        if r.status_code >= 400:
            # Avoid leaking sensitive info; include minimal context.
            raise OAuthExchangeError(self.name, f"Token exchange failed (status={r.status_code})")
        data = r.json()
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise OAuthExchangeError(self.name, "Token response missing access_token")
        return str(token)

    def _get(self, url: str, access_token: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        return requests.get(
            url,
            params=params,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            timeout=HTTP_TIMEOUT_SECONDS,
        )

    def _get_json(self, url: str, access_token: str, params: Optional[Dict[str, str]] = None) -> Any:
        r = self._get(url, access_token, params)
        if r.status_code >= 400:
            raise OAuthExchangeError(self.name, f"Profile fetch failed (status={r.status_code})")
        return r.json()

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        raise NotImplementedError

    async def authenticate(self, credentials: Mapping[str, str]) -> AuthResult:
        """
        Complete the callback leg: code -> token -> profile -> linked user.

        A provider-reported error (e.g. the user denied access) is an auth failure;
        transport and provider errors propagate.
        """
        error = credentials.get("error")
        if error:
            logger.debug("%s login did fail: provider error=%s", self.name, error)
            return AuthFailure(message=str(credentials.get("error_description") or error))
        code = credentials.get("code") or ""
        if not code:
            return AuthFailure(message="Missing authorization code")

        self._require_configured()
        token = await asyncio.to_thread(self.exchange_code, code)
        profile = await asyncio.to_thread(self.fetch_profile, token)
        user = await asyncio.to_thread(self._links.find_or_create_oauth_user, profile)
        logger.debug("%s login did ok: uid=%s user.id=%d", self.name, profile.uid, user.id)
        return AuthSuccess(user=user)


class FacebookStrategy(OAuthStrategy):
    name = "facebook"
    authorize_endpoint = "https://www.facebook.com/v19.0/dialog/oauth"
    token_endpoint = "https://graph.facebook.com/v19.0/oauth/access_token"
    profile_endpoint = "https://graph.facebook.com/v19.0/me"

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        data = self._get_json(self.profile_endpoint, access_token, params={"fields": "id,name,email"})
        return OAuthProfile(
            provider=self.name,
            uid=str(data.get("id") or ""),
            email=data.get("email") or None,
            name=data.get("name") or None,
        )


class GoogleStrategy(OAuthStrategy):
    name = "google"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://openidconnect.googleapis.com/v1/userinfo"

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        data = self._get_json(self.profile_endpoint, access_token)
        # Unverified Google emails must not be linked to existing accounts.
        email = data.get("email") if data.get("email_verified", True) is True else None
        return OAuthProfile(
            provider=self.name,
            uid=str(data.get("sub") or ""),
            email=email or None,
            name=data.get("name") or None,
        )


class GitHubStrategy(OAuthStrategy):
    name = "github"
    authorize_endpoint = "https://github.com/login/oauth/authorize"
    token_endpoint = "https://github.com/login/oauth/access_token"
    profile_endpoint = "https://api.github.com/user"
    emails_endpoint = "https://api.github.com/user/emails"

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        data = self._get_json(self.profile_endpoint, access_token)
        email = data.get("email")
        if not email:
            email = self._primary_email(access_token)
        return OAuthProfile(
            provider=self.name,
            uid=str(data.get("id") or ""),
            email=email or None,
            name=data.get("name") or data.get("login") or None,
        )

    def _primary_email(self, access_token: str) -> Optional[str]:
        """
        Primary verified address from /user/emails, or None.

        Private emails are only listed there, and only for tokens granted `user:email`;
        without that grant GitHub answers 404 and the user signs in without an email.
        """
        r = self._get(self.emails_endpoint, access_token)
        if r.status_code >= 400:
            logger.debug("github emails lookup skipped (status=%d)", r.status_code)
            return None
        emails = r.json()
        for e in emails if isinstance(emails, list) else []:
            if isinstance(e, dict) and e.get("primary") and e.get("verified"):
                return e.get("email") or None
        return None


PROVIDER_STRATEGIES = {
    "facebook": FacebookStrategy,
    "google": GoogleStrategy,
    "github": GitHubStrategy,
}
