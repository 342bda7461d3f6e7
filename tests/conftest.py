import pytest
import requests

import waka_gist_sync


def make_stat(name: str, seconds: float, percent: float) -> waka_gist_sync.LanguageStat:
    minutes_total = int(seconds // 60)
    return waka_gist_sync.LanguageStat(
        name=name,
        hours=minutes_total // 60,
        minutes=minutes_total % 60,
        total_seconds=seconds,
        percent=percent,
    )


def api_entry(name: str, seconds: float, percent: float) -> dict:
    stat = make_stat(name, seconds, percent)
    return {
        "name": stat.name,
        "hours": stat.hours,
        "minutes": stat.minutes,
        "total_seconds": stat.total_seconds,
        "percent": stat.percent,
        "digital": stat.digital,
        "text": stat.text,
    }


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        if self.payload is None:
            raise ValueError("no JSON body")
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeHttp:
    """Records calls and serves canned responses keyed by URL prefix."""

    def __init__(self):
        self.get_routes = {}
        self.patch_response = FakeResponse({})
        self.gets = []
        self.patches = []

    def get(self, url, **kwargs):
        self.gets.append((url, kwargs))
        for prefix, response in self.get_routes.items():
            if url.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected GET {url}")

    def patch(self, url, **kwargs):
        self.patches.append((url, kwargs))
        if isinstance(self.patch_response, Exception):
            raise self.patch_response
        return self.patch_response


@pytest.fixture
def http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr(waka_gist_sync.requests, "get", fake.get)
    monkeypatch.setattr(waka_gist_sync.requests, "patch", fake.patch)
    return fake


@pytest.fixture
def config():
    return waka_gist_sync.Config(
        wakatime_api_key="waka-key",
        gist_id="abc123",
        github_token="gh-token",
    )


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in (
        "GIST_ID", "GH_TOKEN", "WAKATIME_API_KEY", "WAKATIME_RANGE",
        "MERGE_SOURCE", "MERGE_TARGET", "GIST_TITLE",
    ):
        # set first so teardown also removes values a test loads from a .env file
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # Point the default lookup at an empty file so a developer's .env never leaks in
    empty = tmp_path / "empty.env"
    empty.write_text("")
    monkeypatch.setenv("WAKA_GIST_ENV_FILE", str(empty))
    return monkeypatch
