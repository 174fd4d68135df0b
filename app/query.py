# app/query.py
"""
Client-side query engine over the in-memory catalog.

All predicates are ANDed; a single stable sort is applied afterwards and the
result is sliced into 1-based pages. Malformed entries are never an error:
a missing score sorts as 0, a missing air date as "", and non-text field
values are compared by their text form.
"""
import math
from typing import Callable, Iterable, List, Optional

from app.models import Anime, AnimeFilters, PageParams, Page, text

SORT_KEYS = ("score", "aired", "title")

# options offered by the filter page
GENRES = [
    "Action", "Adventure", "Comedy", "Drama", "Fantasy", "Horror",
    "Mystery", "Romance", "Sci-Fi", "Slice of Life", "Sports", "Supernatural",
    "Thriller", "Mecha", "Music", "Psychological",
]
STATUSES = ["Ongoing", "Completed", "Upcoming"]
RATINGS = ["G", "PG", "PG-13", "R", "R+", "Rx"]

def parse_score(score) -> float:
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0

def _lower(value) -> str:
    return (text(value) or "").lower()

def _matches_search(a: Anime, needle: str) -> bool:
    return needle in _lower(a.title) or needle in _lower(a.japanese)

def _matches_genres(a: Anime, wanted: set) -> bool:
    tags = {g.lower() for g in a.genre_list()}
    return bool(tags & wanted)

def build_predicates(f: AnimeFilters) -> List[Callable[[Anime], bool]]:
    preds = []
    if f.search:
        needle = f.search.lower()
        preds.append(lambda a: _matches_search(a, needle))
    wanted = {g.strip().lower() for g in (f.genres or []) if g and g.strip()}
    if wanted:
        preds.append(lambda a: _matches_genres(a, wanted))
    if f.status:
        preds.append(lambda a: a.status == f.status)
    if f.rating:
        preds.append(lambda a: a.rating == f.rating)
    return preds

def sort_entries(entries: List[Anime], sort_by: Optional[str]) -> List[Anime]:
    # list.sort is stable, also with reverse=True
    res = list(entries)
    if sort_by == "score":
        res.sort(key=lambda a: parse_score(a.score), reverse=True)
    elif sort_by == "aired":
        res.sort(key=lambda a: text(a.aired) or "", reverse=True)
    elif sort_by == "title":
        res.sort(key=lambda a: text(a.title) or "")
    return res

def query(entries: Iterable[Anime], filters: Optional[AnimeFilters] = None, page: Optional[PageParams] = None) -> Page:
    """Filter, sort and paginate `entries`. `page.page_size` must be >= 1."""
    filters = filters or AnimeFilters()
    page = page or PageParams()
    preds = build_predicates(filters)
    filtered = [a for a in entries if all(p(a) for p in preds)]
    ordered = sort_entries(filtered, filters.sort_by)

    total = len(ordered)
    start = (page.page - 1) * page.page_size
    items = ordered[start:start + page.page_size] if start >= 0 else []
    return Page(items=items, total=total, page=page.page, page_size=page.page_size,
                total_pages=math.ceil(total / page.page_size))
