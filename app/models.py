# app/models.py
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, List, Union
import time

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def now_ms() -> int:
    return int(time.time() * 1000)

def text(value) -> Optional[str]:
    """Row-store values as text; None stays None, lists are comma-joined."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v is not None)
    return str(value)

@dataclass
class Anime:
    id: str
    title: str
    slug: str
    banner: Optional[str] = None
    score: Optional[str] = None      # numeric text, e.g. "8.5"
    japanese: Optional[str] = None
    episodes: Optional[str] = None
    status: Optional[str] = None     # "Ongoing", "Completed", "Upcoming"
    aired: Optional[str] = None
    genres: Optional[str] = None     # "Action, Comedy"
    duration: Optional[str] = None
    rating: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    @classmethod
    def from_row(cls, r: dict) -> "Anime":
        return cls(
            id=str(r.get("id", "")),
            title=text(r.get("title")) or "",
            slug=text(r.get("slug")) or "",
            banner=text(r.get("banner")),
            score=text(r.get("score")),
            japanese=text(r.get("japanese")),
            episodes=text(r.get("episodes")),
            status=text(r.get("status")),
            aired=text(r.get("aired")),
            genres=text(r.get("genres")),
            duration=text(r.get("duration")),
            rating=text(r.get("rating")),
            created_at=text(r.get("created_at")) or "",
        )

    def genre_list(self) -> List[str]:
        genres = text(self.genres)
        if not genres:
            return []
        return [g.strip() for g in genres.split(",") if g.strip()]

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass
class Episode:
    id: str
    anime_id: str
    season: int
    episode: int
    title: Optional[str] = None
    iframe: Optional[str] = None
    url: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    @classmethod
    def from_row(cls, r: dict) -> "Episode":
        return cls(
            id=str(r.get("id", "")),
            anime_id=str(r.get("anime_id", "")),
            season=int(r.get("season") or 0),
            episode=int(r.get("episode") or 0),
            title=r.get("title"),
            iframe=r.get("iframe"),
            url=r.get("url"),
            created_at=r.get("created_at") or "",
        )

    @property
    def position(self):
        return (self.season, self.episode)

    def to_dict(self) -> dict:
        return asdict(self)

# --- Watch progress: two stored shapes, one in-memory record ---
@dataclass
class BasicProgress:
    season: int
    episode: int

@dataclass
class ExtendedProgress:
    anime_id: Optional[str]
    slug: Optional[str]
    season: int
    episode: int
    timestamp: Optional[int] = None   # epoch millis
    progress: Optional[float] = None

StoredProgress = Union[BasicProgress, ExtendedProgress]

@dataclass
class WatchProgress:
    anime_id: str
    season: int
    episode: int
    slug: Optional[str] = None
    timestamp: Optional[int] = None
    progress: Optional[float] = None

    @classmethod
    def from_stored(cls, anime_id: str, stored: StoredProgress) -> "WatchProgress":
        if isinstance(stored, ExtendedProgress):
            return cls(anime_id=stored.anime_id or anime_id, season=stored.season, episode=stored.episode,
                       slug=stored.slug, timestamp=stored.timestamp, progress=stored.progress)
        return cls(anime_id=anime_id, season=stored.season, episode=stored.episode)

    def to_dict(self) -> dict:
        return asdict(self)

@dataclass
class Comment:
    id: str
    user_id: str
    anime_id: str
    content: str
    parent_id: Optional[str] = None  # None -> top-level
    created_at: str = field(default_factory=now_iso)

    @classmethod
    def from_doc(cls, d: dict) -> "Comment":
        return cls(
            id=str(d["id"]),
            user_id=str(d.get("user_id", "")),
            anime_id=str(d.get("anime_id", "")),
            content=d.get("content") or "",
            parent_id=d.get("parent_id") or None,
            created_at=d.get("created_at") or "",
        )

    def to_doc(self) -> dict:
        return asdict(self)

@dataclass
class GuestUser:
    id: str
    username: str = "Guest"
    email: str = "guest@hindidub.anime"
    role: str = "user"
    created_at: str = field(default_factory=now_iso)
    avatar_url: Optional[str] = None

    def to_doc(self) -> dict:
        return asdict(self)

# --- Query engine inputs / outputs ---
@dataclass
class AnimeFilters:
    search: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    status: Optional[str] = None
    rating: Optional[str] = None
    sort_by: Optional[str] = None  # "score", "aired", "title" or None

@dataclass
class PageParams:
    page: int = 1
    page_size: int = 12

@dataclass
class Page:
    items: List[Anime]
    total: int
    page: int
    page_size: int
    total_pages: int

    def to_dict(self) -> dict:
        return {
            "data": [a.to_dict() for a in self.items],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }
