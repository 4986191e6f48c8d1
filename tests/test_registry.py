import logging

from eir_liberator.connectors.base import BaseConnector
from eir_liberator.connectors.registry import ConnectorRegistry, default_registry
from eir_liberator.connectors.se_1177.connector import Connector1177
from fakes import FakePage


class _Stub(BaseConnector):
    async def scrape(self):
        return []

    def normalize(self, raw_entries):
        return []


class AlphaConnector(_Stub):
    provider_name = "alpha.example"
    country = "SE"

    @classmethod
    def matches(cls, url):
        return "journal" in url


class BetaConnector(_Stub):
    provider_name = "beta.example"
    country = "NO"

    @classmethod
    def matches(cls, url):
        return "journal" in url or "beta" in url


class BrokenConnector(_Stub):
    provider_name = "broken.example"
    country = "DK"

    @classmethod
    def matches(cls, url):
        raise RuntimeError("bad predicate")


class NoCountry(_Stub):
    provider_name = "nowhere.example"

    @classmethod
    def matches(cls, url):
        return True


class NoMatches(_Stub):
    provider_name = "nomatch.example"
    country = "SE"


class FailingInit(_Stub):
    provider_name = "fails.example"
    country = "FI"

    def __init__(self, **kwargs):
        raise RuntimeError("cannot attach")

    @classmethod
    def matches(cls, url):
        return "fails" in url


def test_invalid_registration_is_rejected(caplog):
    reg = ConnectorRegistry()
    with caplog.at_level(logging.ERROR):
        assert reg.register(NoCountry) is False
        assert reg.register(NoMatches) is False
    assert reg.connectors == ()
    assert "missing provider_name or country" in caplog.text
    assert "missing matches()" in caplog.text


def test_first_registered_match_wins():
    reg = ConnectorRegistry()
    assert reg.register(AlphaConnector)
    assert reg.register(BetaConnector)
    assert reg.find_connector("https://x/journal") is AlphaConnector
    assert reg.find_connector("https://beta/") is BetaConnector
    assert reg.find_connector("https://elsewhere/") is None


def test_duplicate_registration_keeps_order():
    reg = ConnectorRegistry()
    reg.register(AlphaConnector)
    reg.register(BetaConnector)
    assert reg.register(AlphaConnector) is True
    assert reg.connectors == (AlphaConnector, BetaConnector)


def test_late_registration_is_visible():
    reg = ConnectorRegistry()
    assert reg.find_connector("https://beta/") is None
    reg.register(BetaConnector)
    assert reg.find_connector("https://beta/") is BetaConnector


def test_raising_predicate_is_skipped(caplog):
    reg = ConnectorRegistry()
    reg.register(BrokenConnector)
    reg.register(BetaConnector)
    with caplog.at_level(logging.ERROR):
        assert reg.find_connector("https://x/journal") is BetaConnector
    assert "broken.example" in caplog.text


def test_active_connector_reused_and_replaced():
    reg = ConnectorRegistry()
    reg.register(AlphaConnector)
    reg.register(BetaConnector)
    page = FakePage("")

    first = reg.get_active_connector("https://x/journal", page=page)
    assert isinstance(first, AlphaConnector)
    assert reg.get_active_connector("https://x/journal/2", page=page) is first

    second = reg.get_active_connector("https://beta/", page=page)
    assert isinstance(second, BetaConnector)
    assert reg.active is second

    assert reg.get_active_connector("https://elsewhere/", page=page) is None
    assert reg.active is None


def test_construction_failure_yields_none(caplog):
    reg = ConnectorRegistry()
    reg.register(FailingInit)
    with caplog.at_level(logging.ERROR):
        assert reg.get_active_connector("https://fails/", page=FakePage("")) is None
    assert reg.active is None
    assert "cannot attach" in caplog.text


def test_clear_active_connector():
    reg = ConnectorRegistry()
    reg.register(AlphaConnector)
    reg.get_active_connector("https://x/journal", page=FakePage(""))
    reg.clear_active_connector()
    assert reg.active is None


def test_builtin_connector_is_registered_on_import():
    assert Connector1177 in default_registry.connectors
