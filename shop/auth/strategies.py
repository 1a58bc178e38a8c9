from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Protocol, runtime_checkable

from shop.auth.config import AuthConfig
from shop.auth.local import LocalStrategy
from shop.auth.models import AuthResult
from shop.auth.oauth import PROVIDER_STRATEGIES, OAuthStrategy
from shop.db.oauth import OAuthLinkStore
from shop.db.users import UserStore
from shop.exceptions import UnknownStrategyError

logger = logging.getLogger(__name__)


@runtime_checkable
class Strategy(Protocol):
    """A way of proving who the caller is: local credentials or one OAuth provider."""

    name: str

    async def authenticate(self, credentials: Mapping[str, str]) -> AuthResult: ...


class StrategyRegistry:
    """Immutable name -> strategy lookup, built once at startup."""

    def __init__(self, strategies: Iterable[Strategy]):
        self._strategies: Dict[str, Strategy] = {s.name: s for s in strategies}

    @property
    def names(self) -> List[str]:
        return sorted(self._strategies)

    def get(self, name: str) -> Strategy:
        strategy = self._strategies.get(name)
        if strategy is None:
            raise UnknownStrategyError(name)
        return strategy

    def oauth(self, name: str) -> OAuthStrategy:
        strategy = self.get(name)
        if not isinstance(strategy, OAuthStrategy):
            raise UnknownStrategyError(name)
        return strategy


def build_strategy_registry(cfg: AuthConfig, *, users: UserStore, oauth_links: OAuthLinkStore) -> StrategyRegistry:
    strategies: List[Strategy] = [LocalStrategy(users)]
    for provider_cfg in cfg.oauth_providers:
        cls = PROVIDER_STRATEGIES.get(provider_cfg.provider)
        if cls is None:
            continue
        if not provider_cfg.configured:
            # Registered anyway; login attempts against it fail at request time.
            logger.info("OAuth provider %s has no client credentials", provider_cfg.provider)
        strategies.append(cls(provider_cfg, oauth_links))
    return StrategyRegistry(strategies)
