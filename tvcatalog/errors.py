"""
Error taxonomy shared by providers, caches and the catalog service.

Deutsch:
    Fehlerklassen für Anbieter, Caches und den Katalogdienst.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all catalog errors. / Basisklasse aller Katalogfehler."""


class UpstreamUnavailable(CatalogError):
    """Network failure, timeout or non-2xx response from an upstream service."""


class MalformedPayload(CatalogError):
    """Upstream answered, but the payload could not be decoded or validated."""


class NotFound(CatalogError):
    """Unknown fingerprint or source id."""


class ConfigurationIncomplete(CatalogError):
    """Required configuration values are missing. / Pflichtangaben fehlen."""
