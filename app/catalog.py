# app/catalog.py
import logging
from typing import Dict, List, Optional, Sequence

import requests

from app.models import Anime, Episode

logger = logging.getLogger(__name__)

ANIME_TABLE = "anime_data"
EPISODES_TABLE = "episodes_data"

class CatalogError(Exception):
    """Raised when the row store cannot be reached or answers with an error."""
    pass

class RestCatalog:
    """
    Read-only client for the PostgREST-style row store holding the catalog.
    Only field-equality predicates and ordering are pushed to the server;
    richer filtering happens in app.query.
    Public lookups never raise: failures are logged and degrade to []/None.
    """

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })
        self.session.headers.update({"Content-Type": "application/json"})

    def fetch(self, table: str, where: Optional[Dict[str, object]] = None, order: Sequence[str] = ()) -> List[dict]:
        """
        Fetch rows of `table` matching every `field == value` in `where`,
        ordered by `order` (entries like "season" or "score.desc").
        """
        params = {}
        for k, v in (where or {}).items():
            params[k] = f"eq.{v}"
        if order:
            params["order"] = ",".join(o if "." in o else f"{o}.asc" for o in order)
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise CatalogError(f"request to {table} failed: {e}") from e
        if not resp.ok:
            logger.error("Row store error %s on %s: %s", resp.status_code, table, resp.text[:200])
            raise CatalogError(f"API Error: {resp.status_code} {resp.reason}")
        try:
            rows = resp.json()
        except ValueError as e:
            raise CatalogError(f"invalid JSON from {table}") from e
        if not isinstance(rows, list):
            raise CatalogError(f"unexpected payload from {table}")
        return rows

    def _safe_fetch(self, table: str, where=None, order=()) -> List[dict]:
        try:
            return self.fetch(table, where, order)
        except CatalogError as e:
            logger.warning("Catalog fetch failed, using empty result: %s", e)
            return []

    def list_anime(self) -> List[Anime]:
        return [Anime.from_row(r) for r in self._safe_fetch(ANIME_TABLE, order=["title"])]

    def get_anime_by_id(self, anime_id: str) -> Optional[Anime]:
        rows = self._safe_fetch(ANIME_TABLE, {"id": anime_id})
        return Anime.from_row(rows[0]) if rows else None

    def get_anime_by_slug(self, slug: str) -> Optional[Anime]:
        rows = self._safe_fetch(ANIME_TABLE, {"slug": slug})
        return Anime.from_row(rows[0]) if rows else None

    def get_episodes(self, anime_id: str) -> List[Episode]:
        rows = self._safe_fetch(EPISODES_TABLE, {"anime_id": anime_id}, order=["season", "episode"])
        return [Episode.from_row(r) for r in rows]

    def get_episode(self, anime_id: str, season: int, episode: int) -> Optional[Episode]:
        rows = self._safe_fetch(EPISODES_TABLE, {"anime_id": anime_id, "season": season, "episode": episode})
        return Episode.from_row(rows[0]) if rows else None

# --- In-memory catalog (simple, used for unit tests) ---
class InMemoryCatalog:
    def __init__(self, animes: Optional[List[Anime]] = None, episodes: Optional[List[Episode]] = None):
        self._animes: List[Anime] = list(animes or [])
        self._episodes: List[Episode] = list(episodes or [])

    def add_anime(self, a: Anime) -> Anime:
        self._animes.append(a); return a
    def add_episode(self, e: Episode) -> Episode:
        self._episodes.append(e); return e
    def remove_anime(self, anime_id: str):
        self._animes = [a for a in self._animes if a.id != anime_id]

    def list_anime(self): return sorted(self._animes, key=lambda a: a.title)
    def get_anime_by_id(self, anime_id: str):
        return next((a for a in self._animes if a.id == anime_id), None)
    def get_anime_by_slug(self, slug: str):
        return next((a for a in self._animes if a.slug == slug), None)

    def get_episodes(self, anime_id: str):
        res = [e for e in self._episodes if e.anime_id == anime_id]
        res.sort(key=lambda e: e.position)
        return res

    def get_episode(self, anime_id: str, season: int, episode: int):
        return next((e for e in self._episodes
                     if e.anime_id == anime_id and e.position == (season, episode)), None)
