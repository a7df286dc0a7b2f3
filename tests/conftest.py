import sys
import time
from pathlib import Path

import pytest

# Ensure the repository root is on sys.path for direct pytest runs
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from geotrail.geocoding.persistent_cache import PersistentCache  # noqa: E402
from geotrail.geocoding.providers import GeocodingProvider  # noqa: E402
from geotrail.geocoding.resolver import GeocodeResolver  # noqa: E402
from geotrail.geocoding.storage import InMemoryKeyValueStore  # noqa: E402
from geotrail.models.geocode import AddressDetail, GeocodeSource  # noqa: E402


class FakeProvider(GeocodingProvider):
    """Provider answering from a dict, recording every city it is asked for."""

    def __init__(self, name, source, results=None, error=None, configured=True, delay=0.0):
        super().__init__()
        self.name = name
        self.source = source
        self.results = results or {}
        self.error = error
        self.configured = configured
        self.delay = delay
        self.calls = []

    @property
    def is_configured(self):
        return self.configured

    def geocode(self, city_name):
        self.calls.append(city_name)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        coords = self.results.get(city_name)
        if coords is None:
            return None
        return self._build_result(coords[0], coords[1], AddressDetail(city=city_name))


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def amap():
    return FakeProvider("amap", GeocodeSource.AMAP)


@pytest.fixture
def osm():
    return FakeProvider("openstreetmap", GeocodeSource.OPENSTREETMAP)


@pytest.fixture
def mapquest():
    return FakeProvider("mapquest", GeocodeSource.MAPQUEST)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_resolver(store, clock):
    """Resolver factory with no pacing so tests run fast."""

    def _make(providers=(), **kwargs):
        kwargs.setdefault("min_interval", 0)
        kwargs.setdefault("batch_delay", 0)
        persistent = kwargs.pop("persistent_cache", None) or PersistentCache(store, clock=clock)
        return GeocodeResolver(providers=list(providers), persistent_cache=persistent, **kwargs)

    return _make


@pytest.fixture
def make_provider():
    return FakeProvider
