# app/documents.py
"""
Document namespaces kept in the key-value store.

Each namespace reads the whole JSON document under its key, changes it in
memory and writes the whole document back. A value that cannot be decoded,
or decodes to the wrong shape, is treated as if the key were absent.
"""
import json
import logging
import random
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.models import (Comment, GuestUser, WatchProgress, BasicProgress,
                        ExtendedProgress, StoredProgress, now_ms)

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favorites"
WATCH_PREFIX = "watch-"
COMMENTS_KEY = "anime_comments"
GUEST_KEY = "guest_user"
PROFILES_KEY = "user_profiles"

_ALPHABET = string.ascii_lowercase + string.digits

def make_id(prefix: str) -> str:
    """`<prefix>_<epoch millis>_<9 random base36 chars>`"""
    suffix = "".join(random.choices(_ALPHABET, k=9))
    return f"{prefix}_{now_ms()}_{suffix}"

def load_doc(store, key: str, expected: type, default: Any):
    raw = store.get(key)
    if raw is None:
        return default
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unreadable document at %r, starting from empty", key)
        return default
    if not isinstance(value, expected):
        logger.warning("Document at %r has unexpected type %s", key, type(value).__name__)
        return default
    return value

def save_doc(store, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, ensure_ascii=False))

# ---- Favorites ----
class Favorites:
    def __init__(self, store):
        self.store = store

    def list(self) -> List[str]:
        ids = load_doc(self.store, FAVORITES_KEY, list, [])
        out: List[str] = []
        for i in ids:
            if isinstance(i, (str, int)) and str(i) not in out:
                out.append(str(i))
        return out

    def has(self, anime_id: str) -> bool:
        return anime_id in self.list()

    def add(self, anime_id: str) -> None:
        ids = self.list()
        if anime_id in ids:
            return
        ids.append(anime_id)
        save_doc(self.store, FAVORITES_KEY, ids)

    def remove(self, anime_id: str) -> None:
        ids = self.list()
        if anime_id not in ids:
            return
        save_doc(self.store, FAVORITES_KEY, [i for i in ids if i != anime_id])

    def toggle(self, anime_id: str) -> bool:
        """Flip membership; returns True when the id is now a favorite."""
        if self.has(anime_id):
            self.remove(anime_id)
            return False
        self.add(anime_id)
        return True

# ---- Watch progress ----
def _as_int(v) -> Optional[int]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return None

EXTENDED_FIELDS = ("animeId", "slug", "timestamp", "progress")

def _as_number(v) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return v

def parse_progress(doc: Dict[str, Any]) -> Optional[StoredProgress]:
    """Map either stored shape to its variant; None when season/episode are unusable."""
    season, episode = _as_int(doc.get("season")), _as_int(doc.get("episode"))
    if season is None or episode is None:
        return None
    if not any(doc.get(k) is not None for k in EXTENDED_FIELDS):
        return BasicProgress(season=season, episode=episode)
    ts = _as_number(doc.get("timestamp"))
    return ExtendedProgress(
        anime_id=str(doc["animeId"]) if doc.get("animeId") else None,
        slug=str(doc["slug"]) if doc.get("slug") else None,
        season=season,
        episode=episode,
        timestamp=int(ts) if ts is not None else None,
        progress=_as_number(doc.get("progress")),
    )

class WatchProgressStore:
    def __init__(self, store):
        self.store = store

    @staticmethod
    def key(anime_id: str) -> str:
        return f"{WATCH_PREFIX}{anime_id}"

    def set(self, anime_id: str, season: int, episode: int) -> WatchProgress:
        """Overwrite progress for a title with the basic {season, episode} shape."""
        save_doc(self.store, self.key(anime_id), {"season": season, "episode": episode})
        return WatchProgress(anime_id=anime_id, season=season, episode=episode)

    def record(self, anime_id: str, slug: str, season: int, episode: int, progress: float = 0) -> WatchProgress:
        """Overwrite progress with the extended shape used by Continue Watching."""
        ts = now_ms()
        save_doc(self.store, self.key(anime_id), {
            "animeId": anime_id,
            "slug": slug,
            "season": season,
            "episode": episode,
            "timestamp": ts,
            "progress": progress,
        })
        return WatchProgress(anime_id=anime_id, season=season, episode=episode,
                             slug=slug, timestamp=ts, progress=progress)

    def get(self, anime_id: str) -> Optional[WatchProgress]:
        doc = load_doc(self.store, self.key(anime_id), dict, None)
        if doc is None:
            return None
        stored = parse_progress(doc)
        return WatchProgress.from_stored(anime_id, stored) if stored else None

    def all(self) -> List[WatchProgress]:
        out = []
        for k in self.store.keys():
            if not k.startswith(WATCH_PREFIX):
                continue
            rec = self.get(k[len(WATCH_PREFIX):])
            if rec is not None:
                out.append(rec)
        return out

    def recent(self, limit: Optional[int] = None) -> List[WatchProgress]:
        """Records ordered by last update, newest first; basic records count as timestamp 0."""
        res = sorted(self.all(), key=lambda r: r.timestamp or 0, reverse=True)
        return res if limit is None else res[:limit]

# ---- Comments ----
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

def _created(c: Comment) -> datetime:
    try:
        dt = datetime.fromisoformat(c.created_at.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return _EPOCH
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

class Comments:
    def __init__(self, store):
        self.store = store

    def _load(self) -> List[Comment]:
        out = []
        for d in load_doc(self.store, COMMENTS_KEY, list, []):
            if isinstance(d, dict) and d.get("id"):
                out.append(Comment.from_doc(d))
        return out

    def _save(self, comments: List[Comment]) -> None:
        save_doc(self.store, COMMENTS_KEY, [c.to_doc() for c in comments])

    def all(self) -> List[Comment]:
        return self._load()

    def get(self, comment_id: str) -> Optional[Comment]:
        return next((c for c in self._load() if c.id == comment_id), None)

    def append(self, comment: Comment) -> Comment:
        comments = self._load()
        comments.append(comment)
        self._save(comments)
        return comment

    def list_top_level(self, anime_id: str) -> List[Comment]:
        res = [c for c in self._load() if c.anime_id == anime_id and not c.parent_id]
        res.sort(key=_created, reverse=True)
        return res

    def list_replies(self, parent_id: str) -> List[Comment]:
        res = [c for c in self._load() if c.parent_id == parent_id]
        res.sort(key=_created)
        return res

    def delete(self, comment_id: str) -> int:
        """Remove the comment and its direct replies; returns how many were removed."""
        comments = self._load()
        kept = [c for c in comments if c.id != comment_id and c.parent_id != comment_id]
        self._save(kept)
        return len(comments) - len(kept)

# ---- Guest identity / profiles ----
class Identity:
    def __init__(self, store):
        self.store = store

    def _read_guest(self) -> Optional[GuestUser]:
        doc = load_doc(self.store, GUEST_KEY, dict, None)
        if not doc or not doc.get("id"):
            return None
        return GuestUser(
            id=str(doc["id"]),
            username=doc.get("username") or "Guest",
            email=doc.get("email") or "guest@hindidub.anime",
            role=doc.get("role") or "user",
            created_at=doc.get("created_at") or "",
            avatar_url=doc.get("avatar_url"),
        )

    def get_or_create(self) -> GuestUser:
        existing = self._read_guest()
        if existing:
            return existing
        guest = GuestUser(id=make_id("guest"))
        save_doc(self.store, GUEST_KEY, guest.to_doc())
        self._save_profile(guest)
        logger.info("Created guest identity %s", guest.id)
        return guest

    def profiles(self) -> Dict[str, dict]:
        return load_doc(self.store, PROFILES_KEY, dict, {})

    def profile_for(self, user_id: str) -> dict:
        p = self.profiles().get(user_id)
        if not isinstance(p, dict):
            return {"username": "Anonymous", "avatar_url": None}
        return {"username": p.get("username") or "Anonymous", "avatar_url": p.get("avatar_url")}

    def _save_profile(self, guest: GuestUser) -> None:
        profiles = self.profiles()
        profiles[guest.id] = {"username": guest.username, "avatar_url": guest.avatar_url}
        save_doc(self.store, PROFILES_KEY, profiles)

    def update(self, guest: GuestUser) -> None:
        save_doc(self.store, GUEST_KEY, guest.to_doc())
        self._save_profile(guest)
