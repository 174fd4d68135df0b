# app/service.py
from typing import Dict, List, Optional
import logging
import re
import threading

from app.models import Anime, AnimeFilters, Comment, Episode, GuestUser, Page, PageParams, WatchProgress, text
from app.documents import Comments, Favorites, Identity, WatchProgressStore, make_id
from app.query import GENRES, RATINGS, SORT_KEYS, STATUSES, query

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
SUGGESTION_COUNT = 8

# Exceptions
class ValidationError(Exception):
    """Raised when input or business validation fails."""
    pass

class NotFoundError(Exception):
    """Raised when an entity is not found."""
    pass

class AnimeService:
    """
    Application context for the catalog browser.
    Holds the key-value store, the catalog source and the guest identity;
    built once at startup and handed to the web layer.
    """

    def __init__(self, store, catalog, page_size: int = 12, continue_limit: int = 6):
        self.store = store
        self.catalog = catalog
        self.page_size = page_size
        self.continue_limit = continue_limit
        self.favorites = Favorites(store)
        self.progress = WatchProgressStore(store)
        self.comments = Comments(store)
        self.identity = Identity(store)
        # serializes whole-document read-modify-writes across request threads
        self._write_lock = threading.RLock()
        with self._write_lock:
            self.guest = self.identity.get_or_create()
        logger.debug("AnimeService initialized with store %s, catalog %s, guest %s",
                     type(store).__name__, type(catalog).__name__, self.guest.id)

    # ---- Catalog ----
    def browse(self, filters: Optional[AnimeFilters] = None, page: int = 1, page_size: Optional[int] = None) -> Page:
        """Filter, sort and paginate the whole catalog."""
        filters = filters or AnimeFilters()
        size = self.page_size if page_size is None else page_size
        if page < 1:
            raise ValidationError("page must be >= 1")
        if size < 1:
            raise ValidationError("pageSize must be >= 1")
        if filters.sort_by and filters.sort_by not in SORT_KEYS:
            raise ValidationError(f"unknown sortBy '{filters.sort_by}'")
        entries = self.catalog.list_anime()
        result = query(entries, filters, PageParams(page=page, page_size=size))
        logger.debug("browse: %s -> total=%s page=%s/%s", filters, result.total, page, result.total_pages)
        return result

    def home(self) -> Dict[str, List[Anime]]:
        entries = self.catalog.list_anime()
        by_score = query(entries, AnimeFilters(sort_by="score"), PageParams(1, 12)).items
        # newest catalog rows first; ties keep catalog order
        recent = sorted(entries, key=lambda a: text(a.created_at) or "", reverse=True)[:12]
        return {
            "featured": by_score[:5],
            "top_rated": by_score,
            "popular": query(entries, None, PageParams(1, 12)).items,
            "recent": recent,
        }

    def filter_options(self) -> Dict[str, List[str]]:
        return {"genres": list(GENRES), "statuses": list(STATUSES),
                "ratings": list(RATINGS), "sortBy": list(SORT_KEYS)}

    def suggestions(self, limit: int = SUGGESTION_COUNT) -> List[Anime]:
        return query(self.catalog.list_anime(), None, PageParams(1, limit)).items

    def get_anime(self, slug: str) -> Anime:
        a = self.catalog.get_anime_by_slug(slug)
        if not a:
            logger.debug("get_anime: slug %s not found", slug)
            raise NotFoundError("anime not found")
        return a

    def list_episodes(self, anime_id: str) -> List[Episode]:
        return self.catalog.get_episodes(anime_id)

    def episodes_by_season(self, anime_id: str) -> Dict[int, List[Episode]]:
        grouped: Dict[int, List[Episode]] = {}
        for e in sorted(self.list_episodes(anime_id), key=lambda e: e.position):
            grouped.setdefault(e.season, []).append(e)
        return grouped

    def neighbours(self, episodes: List[Episode], season: int, episode: int):
        """Return (previous, next) around (season, episode) in playback order."""
        ordered = sorted(episodes, key=lambda e: e.position)
        idx = next((i for i, e in enumerate(ordered) if e.position == (season, episode)), -1)
        if idx < 0:
            return None, None
        prev_ep = ordered[idx - 1] if idx > 0 else None
        next_ep = ordered[idx + 1] if idx < len(ordered) - 1 else None
        return prev_ep, next_ep

    def watch(self, slug: str, season: int, episode: int) -> dict:
        """
        Load an episode for playback and record it as the latest progress
        for its title. Raises NotFoundError for unknown titles or episodes.
        """
        anime = self.get_anime(slug)
        ep = self.catalog.get_episode(anime.id, season, episode)
        if not ep:
            raise NotFoundError("episode not found")
        prev_ep, next_ep = self.neighbours(self.list_episodes(anime.id), season, episode)
        with self._write_lock:
            rec = self.progress.record(anime.id, anime.slug, season, episode)
        logger.info("Watching anime=%s S%sE%s", anime.id, season, episode)
        return {"anime": anime, "episode": ep, "previous": prev_ep, "next": next_ep,
                "progress": rec, "suggestions": self.suggestions()}

    # ---- Favorites ----
    def is_favorite(self, anime_id: str) -> bool:
        return self.favorites.has(anime_id)

    def toggle_favorite(self, anime_id: str) -> bool:
        with self._write_lock:
            state = self.favorites.toggle(anime_id)
        logger.info("Favorite anime=%s -> %s", anime_id, state)
        return state

    def list_favorites(self) -> List[Anime]:
        """Favorites resolved against the catalog; ids that no longer resolve are skipped."""
        out = []
        for aid in self.favorites.list():
            a = self.catalog.get_anime_by_id(aid)
            if a:
                out.append(a)
            else:
                logger.debug("list_favorites: dropping dangling id %s", aid)
        return out

    # ---- Watch progress ----
    def _resolve(self, records: List[WatchProgress]) -> List[dict]:
        out = []
        for r in records:
            a = self.catalog.get_anime_by_id(r.anime_id)
            if a:
                out.append({"progress": r, "anime": a})
        return out

    def continue_watching(self, limit: Optional[int] = None) -> List[dict]:
        n = self.continue_limit if limit is None else limit
        if n < 1:
            raise ValidationError("limit must be >= 1")
        return self._resolve(self.progress.recent(n))

    def watch_history(self) -> List[dict]:
        return self._resolve(self.progress.recent())

    # ---- Comments ----
    def post_comment(self, anime_id: str, content: str, parent_id: Optional[str] = None) -> Comment:
        """Post a comment or a reply as the guest user. Content must be non-empty."""
        if content is not None and not isinstance(content, str):
            raise ValidationError("comment content must be text")
        if parent_id is not None and not isinstance(parent_id, str):
            raise ValidationError("parent_id must be text")
        if not content or not content.strip():
            logger.warning("post_comment: empty content rejected")
            raise ValidationError("comment content required")
        c = Comment(id=make_id("comment"), user_id=self.guest.id, anime_id=anime_id,
                    content=content.strip(), parent_id=parent_id or None)
        with self._write_lock:
            if parent_id and not self.comments.get(parent_id):
                raise NotFoundError("parent comment not found")
            self.comments.append(c)
        logger.info("Posted comment id=%s anime=%s parent=%s", c.id, anime_id, parent_id)
        return c

    def _with_author(self, c: Comment) -> dict:
        d = c.to_doc()
        d["user"] = dict(self.identity.profile_for(c.user_id), id=c.user_id)
        return d

    def comment_threads(self, anime_id: str) -> List[dict]:
        threads = []
        for top in self.comments.list_top_level(anime_id):
            d = self._with_author(top)
            d["replies"] = [self._with_author(r) for r in self.comments.list_replies(top.id)]
            threads.append(d)
        return threads

    def delete_comment(self, comment_id: str) -> int:
        with self._write_lock:
            removed = self.comments.delete(comment_id)
        logger.info("Deleted comment id=%s (%d removed)", comment_id, removed)
        return removed

    # ---- Profile ----
    def get_profile(self) -> GuestUser:
        return self.guest

    def update_username(self, username: str) -> GuestUser:
        if username is not None and not isinstance(username, str):
            raise ValidationError("username must be text")
        name = (username or "").strip()
        if not name:
            raise ValidationError("username required")
        if not USERNAME_RE.match(name):
            raise ValidationError("username may only contain letters, numbers and underscores")
        with self._write_lock:
            self.guest.username = name
            self.identity.update(self.guest)
        logger.info("Updated guest %s username=%s", self.guest.id, name)
        return self.guest
