import json
import os

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry
from unittest import mock

os.environ.setdefault("PROJECT", "mlab-oti")
os.environ.setdefault("GITHUB_WEBHOOK_SECRET", "goodsecret")


def passthrough_decorator(*args, **kwargs):
    """Passthrough decorator that doesn't do rate limiting"""

    def decorator(func):
        return func

    return decorator


mock.patch("slowapi.Limiter.limit", passthrough_decorator).start()

# ruff: noqa: E402
from gmx.main import app
from gmx.core import metrics
from gmx.core.config import settings
from gmx.core.maintenance_state import MaintenanceState
from gmx.core.siteinfo import SiteNotFoundError

FULL_SITE = ["mlab1", "mlab2", "mlab3", "mlab4"]

SITES = {
    "abc01": FULL_SITE,
    "abc02": FULL_SITE,
    "def01": FULL_SITE,
    "uvw03": FULL_SITE,
    "xyz01": FULL_SITE,
    "xyz02": FULL_SITE,
    "vir01": ["mlab1"],
    "odd02": ["mlab2", "mlab3"],
    "abc0t": FULL_SITE,
    "nop0t": FULL_SITE,
    "abc03": FULL_SITE,
    "wxy01": FULL_SITE,
}

# sample maintenance state as written to disk
SAVED_STATE = {
    "Machines": {
        "mlab1-abc01": ["1"],
        "mlab1-abc02": ["8"],
        "mlab2-abc02": ["8"],
        "mlab3-abc02": ["8"],
        "mlab4-abc02": ["8"],
        "mlab3-def01": ["5"],
        "mlab4-def01": ["20"],
        "mlab1-uvw03": ["4", "11"],
        "mlab2-uvw03": ["4", "11"],
        "mlab3-uvw03": ["4", "11"],
        "mlab4-uvw03": ["4", "11"],
    },
    "Sites": {
        "abc02": ["8"],
        "uvw03": ["4", "11"],
    },
}


class FakeSiteDirectory:
    """in-memory stand-in for SiteDirectory"""

    def __init__(self, sites=None):
        self.sites_by_name = dict(SITES if sites is None else sites)
        self.reloads = 0

    def reload(self):
        self.reloads += 1

    def machines(self, site):
        if site not in self.sites_by_name:
            raise SiteNotFoundError(f"Site not found: {site}")
        return list(self.sites_by_name[site])

    def sites(self):
        return sorted(self.sites_by_name)


@pytest.fixture(scope="function")
def directory():
    return FakeSiteDirectory()


@pytest.fixture(scope="function")
def metrics_registry():
    """isolated prometheus registry so gauge values don't leak between tests"""
    return CollectorRegistry()


@pytest.fixture(scope="function")
def gauges(metrics_registry):
    return {
        "machine_gauge": metrics.machine_gauge(metrics_registry),
        "site_gauge": metrics.site_gauge(metrics_registry),
    }


@pytest.fixture(scope="function")
def state_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps(SAVED_STATE))
    return path


@pytest.fixture(scope="function")
def state(state_file, directory, gauges):
    """registry restored from SAVED_STATE"""
    return MaintenanceState.load(state_file, directory, "mlab-oti", **gauges)


@pytest.fixture(scope="function")
def empty_state(tmp_path, directory, gauges):
    return MaintenanceState(tmp_path / "empty.json", directory, "mlab-oti", **gauges)


@pytest.fixture(scope="function")
def client(tmp_path, directory, monkeypatch):
    """create a test client with a fake siteinfo directory and no scheduler"""
    monkeypatch.setattr(settings, "STATE_FILE", tmp_path / "webhook-state.json")

    async def passthrough_middleware(self, request, call_next):
        """passthrough middleware that doesnt do rate limiting"""
        response = await call_next(request)
        return response

    with (
        mock.patch("gmx.main.SiteDirectory", lambda *args, **kwargs: directory),
        mock.patch("gmx.main.init_scheduler"),
        mock.patch("gmx.main.start_scheduler"),
        mock.patch("gmx.main.shutdown_scheduler"),
        mock.patch("slowapi.middleware.SlowAPIMiddleware.dispatch", passthrough_middleware),
    ):
        with TestClient(app, base_url="http://localhost:9999") as test_client:
            yield test_client


@pytest.fixture(scope="function")
def app_state(client):
    return client.app.state.maintenance
