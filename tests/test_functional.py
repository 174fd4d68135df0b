import pytest
from run import create_app
from app.store import SqliteStore
from app.catalog import InMemoryCatalog
from app.models import Anime, Episode
from app.service import AnimeService

@pytest.fixture
def client(tmp_path):
    db_file = str(tmp_path / "functional.sqlite")
    app = create_app({"database": db_file})
    catalog = InMemoryCatalog(
        [Anime(id="1", title="Demon Slayer", slug="demon-slayer", score="8.7", aired="2019-04-06"),
         Anime(id="2", title="Jujutsu Kaisen", slug="jujutsu-kaisen", score="8.6", aired="2020-10-03")],
        [Episode(id="d1", anime_id="1", season=1, episode=1),
         Episode(id="d2", anime_id="1", season=1, episode=2),
         Episode(id="d3", anime_id="1", season=2, episode=1),
         Episode(id="j1", anime_id="2", season=1, episode=1)],
    )
    svc = AnimeService(SqliteStore(db_file), catalog)
    app.config["SERVICE"] = svc
    app.testing = True
    with app.test_client() as c:
        yield c, svc

def test_watch_flow_feeds_continue_watching(client):
    c, svc = client
    r = c.get("/anime/demon-slayer/watch/1/2")
    assert r.status_code == 200
    body = r.get_json()
    assert body["previous"]["id"] == "d1" and body["next"]["id"] == "d3"
    assert body["progress"]["slug"] == "demon-slayer"

    items = c.get("/continue-watching").get_json()
    assert len(items) == 1
    assert items[0]["anime"]["slug"] == "demon-slayer"
    assert items[0]["progress"]["episode"] == 2

def test_watch_last_episode_has_no_next(client):
    c, svc = client
    body = c.get("/anime/demon-slayer/watch/2/1").get_json()
    assert body["next"] is None
    assert c.get("/anime/demon-slayer/watch/9/9").status_code == 404

def test_history_lists_all_watched(client):
    c, svc = client
    c.get("/anime/demon-slayer/watch/1/1")
    c.get("/anime/jujutsu-kaisen/watch/1/1")
    slugs = sorted(i["anime"]["slug"] for i in c.get("/history").get_json())
    assert slugs == ["demon-slayer", "jujutsu-kaisen"]
    assert len(c.get("/continue-watching?limit=1").get_json()) == 1

def test_detail_shows_comment_threads(client):
    c, svc = client
    top = c.post("/anime/1/comments", data={"content": "first!"}).get_json()
    c.post("/anime/1/comments", data={"content": "second", "parent_id": top["id"]})
    body = c.get("/anime/demon-slayer").get_json()
    assert len(body["comments"]) == 1
    thread = body["comments"][0]
    assert thread["user"]["username"] == "Guest"
    assert [r["content"] for r in thread["replies"]] == ["second"]

    c.delete(f"/comments/{top['id']}")
    assert c.get("/anime/demon-slayer").get_json()["comments"] == []

def test_profile_rename(client):
    c, svc = client
    assert c.get("/profile").get_json()["username"] == "Guest"
    r = c.post("/profile", json={"username": "weeb_01"})
    assert r.status_code == 200 and r.get_json()["username"] == "weeb_01"
    assert c.post("/profile", json={"username": "no spaces!"}).status_code == 400

def test_home_sections(client):
    c, svc = client
    body = c.get("/").get_json()
    assert [a["slug"] for a in body["featured"]] == ["demon-slayer", "jujutsu-kaisen"]
    assert len(body["popular"]) == 2
