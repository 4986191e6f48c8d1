# eir_liberator/connectors/__init__.py
"""
Provider connectors.

Importing this package registers the built-in connectors with
`registry.default_registry` (safe side effect). Pipelines that want an
isolated registry build their own ConnectorRegistry and register classes
explicitly.
"""

__all__ = []  # keep empty; no re-exports

from .se_1177 import connector as _connector_1177  # noqa: F401,E402
