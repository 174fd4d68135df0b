import pytest
import requests

from app.catalog import RestCatalog, CatalogError, InMemoryCatalog
from app.service import AnimeService
from app.store import InMemoryStore

class FakeResponse:
    def __init__(self, status=200, payload=None, text="", bad_json=False):
        self.status_code = status
        self.ok = 200 <= status < 400
        self.reason = "OK" if self.ok else "Error"
        self.text = text
        self._payload = payload
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("no json")
        return self._payload

class FakeSession:
    """Records calls and replays queued responses (or raises queued exceptions)."""
    def __init__(self, *responses):
        self.headers = {}
        self.calls = []
        self._responses = list(responses)

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        r = self._responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

ROWS = [
    {"id": 1, "title": "Frieren", "slug": "frieren", "score": "9.3", "genres": "Adventure, Drama",
     "status": "Completed", "created_at": "2024-01-01T00:00:00Z"},
]

# ---------- RestCatalog request building ----------
def test_fetch_builds_equality_and_order_params():
    session = FakeSession(FakeResponse(payload=[]))
    cat = RestCatalog("http://rows.local/", api_key="k", timeout=3, session=session)
    cat.fetch("episodes_data", {"anime_id": "1", "season": 2}, order=["season", "episode.desc"])
    url, params, timeout = session.calls[0]
    assert url == "http://rows.local/rest/v1/episodes_data"
    assert params == {"anime_id": "eq.1", "season": "eq.2", "order": "season.asc,episode.desc"}
    assert timeout == 3
    assert session.headers["apikey"] == "k" and session.headers["Authorization"] == "Bearer k"

def test_list_anime_parses_rows():
    cat = RestCatalog("http://rows.local", session=FakeSession(FakeResponse(payload=ROWS)))
    got = cat.list_anime()
    assert got[0].id == "1" and got[0].genre_list() == ["Adventure", "Drama"]

def test_lookup_by_slug_and_missing():
    session = FakeSession(FakeResponse(payload=ROWS), FakeResponse(payload=[]))
    cat = RestCatalog("http://rows.local", session=session)
    assert cat.get_anime_by_slug("frieren").title == "Frieren"
    assert cat.get_anime_by_id("999") is None
    assert session.calls[0][1] == {"slug": "eq.frieren"}

def test_episodes_are_ordered_by_season_then_episode():
    rows = [{"id": "e1", "anime_id": "1", "season": 1, "episode": 1, "iframe": "<iframe>"}]
    session = FakeSession(FakeResponse(payload=rows), FakeResponse(payload=rows))
    cat = RestCatalog("http://rows.local", session=session)
    eps = cat.get_episodes("1")
    assert eps[0].position == (1, 1)
    assert session.calls[0][1]["order"] == "season.asc,episode.asc"
    assert cat.get_episode("1", 1, 1).iframe == "<iframe>"

# ---------- Upstream failures degrade to empty ----------
@pytest.mark.parametrize("response", [
    requests.ConnectionError("down"),
    FakeResponse(status=500, text="boom"),
    FakeResponse(bad_json=True),
    FakeResponse(payload={"message": "not a list"}),
])
def test_failures_degrade_to_empty(response):
    cat = RestCatalog("http://rows.local", session=FakeSession(response, response))
    with pytest.raises(CatalogError):
        cat.fetch("anime_data")
    assert cat.list_anime() == []

def test_service_browse_with_unreachable_catalog():
    cat = RestCatalog("http://rows.local", session=FakeSession(requests.Timeout("slow")))
    svc = AnimeService(InMemoryStore(), cat)
    page = svc.browse()
    assert page.total == 0 and page.total_pages == 0 and page.items == []

# ---------- InMemoryCatalog helpers ----------
def test_in_memory_catalog_lookup_helpers():
    cat = InMemoryCatalog()
    assert cat.list_anime() == [] and cat.get_episodes("x") == []
    assert cat.get_episode("x", 1, 1) is None
