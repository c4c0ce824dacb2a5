import asyncio
import json
import os
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

import pytest
from typer.testing import CliRunner

from npilookup.domain.interfaces.transport import Transport, TransportResponse
from npilookup.infrastructure.config import settings
from npilookup.infrastructure.config.settings import clear_test_config

Outcome = Union[TransportResponse, BaseException]


def make_provider_payload(
    npi: str,
    first_name: str = "JANE",
    last_name: str = "DOE",
    taxonomy: str = "Family Medicine",
) -> Dict[str, Any]:
    """Builds a registry 'results' entry shaped like a real NPI-1 record."""
    return {
        "created_epoch": "1117584000000",
        "enumeration_type": "NPI-1",
        "last_updated_epoch": 1183939200000,
        "number": npi,
        "addresses": [
            {
                "country_code": "US",
                "country_name": "United States",
                "address_purpose": "LOCATION",
                "address_type": "DOM",
                "address_1": "100 MAIN ST",
                "city": "SPRINGFIELD",
                "state": "IL",
                "postal_code": "627011234",
                "telephone_number": "217-555-0100",
            },
            {
                "country_code": "US",
                "address_purpose": "MAILING",
                "address_1": "PO BOX 1",
                "city": "SPRINGFIELD",
                "state": "IL",
                "postal_code": "62701",
            },
        ],
        "practiceLocations": [],
        "basic": {
            "first_name": first_name,
            "last_name": last_name,
            "credential": "MD",
            "sole_proprietor": "NO",
            "gender": "F",
            "enumeration_date": "2005-06-01",
            "last_updated": "2007-07-09",
            "status": "A",
        },
        "taxonomies": [
            {"code": "207Q00000X", "taxonomy_group": "", "desc": taxonomy,
             "state": "IL", "license": "036123456", "primary": True},
        ],
        "identifiers": [],
        "endpoints": [],
        "other_names": [],
    }


def make_registry_body(*providers: Dict[str, Any]) -> bytes:
    return json.dumps({"result_count": len(providers), "results": list(providers)}).encode("utf-8")


def npi_from_url(url: str) -> str:
    return parse_qs(urlparse(url).query).get("number", [""])[0]


class FakeTransport(Transport):
    """Transport driven by a handler (url -> response or exception).

    Records every URL fetched and the peak number of concurrent fetches.
    """

    def __init__(self, handler: Callable[[str], Outcome], delay: float = 0.0):
        self.handler = handler
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    async def fetch(self, url):
        self.calls.append(url)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            outcome = self.handler(url)
        finally:
            self.in_flight -= 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self):
        self.closed = True


def scripted(*outcomes: Outcome) -> Callable[[str], Outcome]:
    """Handler replaying outcomes in order; the last one repeats."""
    remaining = list(outcomes)

    def handler(url: str) -> Outcome:
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]
    return handler


def by_npi(failing: Optional[Dict[str, Outcome]] = None) -> Callable[[str], Outcome]:
    """Handler answering each NPI with its own record unless listed in ``failing``."""
    failing = failing or {}

    def handler(url: str) -> Outcome:
        npi = npi_from_url(url)
        if npi in failing:
            return failing[npi]
        return TransportResponse(body=make_registry_body(make_provider_payload(npi)), status_code=200)
    return handler


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class RecordingWaiter:
    """Backoff waiter that never sleeps; optionally cancels on its n-th call."""

    def __init__(self, cancel_on_call: Optional[int] = None):
        self.delays: List[float] = []
        self.cancel_on_call = cancel_on_call

    async def __call__(self, delay, cancel) -> bool:
        self.delays.append(delay)
        if cancel is not None and self.cancel_on_call is not None and len(self.delays) >= self.cancel_on_call:
            cancel.cancel()
        return cancel is not None and cancel.cancelled


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def provider_payload():
    return make_provider_payload


@pytest.fixture
def registry_body():
    return make_registry_body


@pytest.fixture
def ok_response():
    """Builds a 200 response carrying the record for the given NPI."""
    def build(npi: str = "1234567893") -> TransportResponse:
        return TransportResponse(body=make_registry_body(make_provider_payload(npi)), status_code=200)
    return build


@pytest.fixture
def fake_transport():
    """Factory: fake_transport(handler, delay=0.0)."""
    return FakeTransport


@pytest.fixture
def scripted_handler():
    return scripted


@pytest.fixture
def npi_handler():
    return by_npi


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recording_waiter():
    """Factory: recording_waiter(cancel_on_call=None)."""
    return RecordingWaiter


@pytest.fixture
def events():
    """Collects domain events; pass ``events.append`` as the sink."""
    return []


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch):
    """Keeps host settings (env, .env, ~/.npilookup) and test overrides out of every test."""
    for name in list(os.environ):
        if name.startswith("NPILOOKUP_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", True)
    yield
    clear_test_config()
