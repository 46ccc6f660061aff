"""
Provider registry.

Deutsch:
    Registry der Datenanbieter (Xtream, M3U).
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type

import requests

from .. import __version__
from ..errors import MalformedPayload, UpstreamUnavailable
from ..models import ProgramEntry, RawEntry
from ..settings import ProviderKind, Settings

log = logging.getLogger(__name__)

USER_AGENT = f"tvcatalog/{__version__} (Mozilla/5.0 compatible)"


class BaseProvider:
    """
    Base class for all upstream providers.

    Deutsch:
        Basisklasse für alle Anbieter.
    """

    kind: ProviderKind
    guide_text_base64 = False

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or build_session()

    def fetch_live_streams(self) -> List[RawEntry]:  # pragma: no cover - abstract
        raise NotImplementedError

    def fetch_categories(self) -> Dict[str, str]:
        return {}

    def fetch_short_epg(self, source_id: str) -> List[ProgramEntry]:
        return []

    def _get(self, url: str, *, params: Optional[Dict[str, str]] = None, timeout: float) -> requests.Response:
        try:
            response = self.session.get(url, params=params, timeout=timeout)
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"{self.kind.value} request failed: {exc}") from exc
        if response.status_code >= 400:
            response.close()
            raise UpstreamUnavailable(f"{self.kind.value} request failed: HTTP {response.status_code}")
        return response

    def _get_json(self, url: str, *, params: Optional[Dict[str, str]] = None, timeout: float):
        response = self._get(url, params=params, timeout=timeout)
        text = response.text
        if "<html" in text[:512].lower():
            raise MalformedPayload(f"{self.kind.value} answered with an HTML page")
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedPayload(f"{self.kind.value} returned invalid JSON: {exc}") from exc


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": USER_AGENT,
            "Accept": "application/json, text/plain, */*",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
        }
    )
    return session


_REGISTRY: Dict[ProviderKind, Type[BaseProvider]] = {}


def register(provider_cls: Type[BaseProvider]) -> Type[BaseProvider]:
    _REGISTRY[provider_cls.kind] = provider_cls
    return provider_cls


def get_provider_class(kind: ProviderKind) -> Type[BaseProvider]:
    provider_cls = _REGISTRY.get(ProviderKind(kind))
    if provider_cls is None:
        raise KeyError(f"provider {kind} not registered")
    return provider_cls


def create_provider(settings: Settings, session: Optional[requests.Session] = None) -> BaseProvider:
    provider_cls = get_provider_class(settings.provider)
    log.debug("using provider %s", provider_cls.kind.value)
    return provider_cls(settings, session=session)


def list_providers() -> List[str]:
    return sorted(kind.value for kind in _REGISTRY)


# Registration side effects.
from . import m3u, xtream  # noqa: E402,F401
