# app/web.py
from flask import Blueprint, jsonify, request, current_app
from app.models import AnimeFilters
from app.service import AnimeService, ValidationError, NotFoundError
import logging
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__, url_prefix="")  # blueprint name = 'main'

def register_routes(app, service: AnimeService):
    """
    Register blueprint and ensure SERVICE is in app.config.
    Call this once during app creation (run.create_app does this).
    """
    if "SERVICE" not in app.config:
        app.config["SERVICE"] = service
    app.register_blueprint(bp)
    logger.debug("Registered blueprint 'main' and injected SERVICE")

def register_error_handlers(app):
    """Centralized handlers for service exceptions."""
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        logger.warning("ValidationError: %s", e)
        return jsonify(error=str(e)), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        logger.info("NotFoundError: %s", e)
        return jsonify(error=str(e)), 404

# helper to get service instance
def current_service() -> AnimeService:
    return current_app.config["SERVICE"]

def _int_arg(name: str, default: Optional[int]) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")

def _payload() -> Mapping:
    """JSON object body, or the form when the body is not JSON."""
    data = request.get_json(silent=True)
    if data is None:
        return request.form
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data

def _watch_item(item: dict) -> dict:
    return {"anime": item["anime"].to_dict(), "progress": item["progress"].to_dict()}

# -----------------------
# Catalog
# -----------------------
@bp.route("/")
def index():
    svc = current_service()
    sections = svc.home()
    return jsonify({k: [a.to_dict() for a in v] for k, v in sections.items()})

@bp.route("/filters")
def filter_options():
    return jsonify(current_service().filter_options())

@bp.route("/anime")
def anime_list():
    svc = current_service()
    genres_raw = request.args.get("genres", "")
    filters = AnimeFilters(
        search=(request.args.get("search") or "").strip() or None,
        genres=[g for g in genres_raw.split(",") if g.strip()],
        status=request.args.get("status") or None,
        rating=request.args.get("rating") or None,
        sort_by=request.args.get("sortBy") or None,
    )
    page = svc.browse(filters, page=_int_arg("page", 1), page_size=_int_arg("pageSize", None))
    return jsonify(page.to_dict())

@bp.route("/anime/<slug>")
def anime_detail(slug: str):
    svc = current_service()
    a = svc.get_anime(slug)  # raises NotFoundError if missing
    seasons = svc.episodes_by_season(a.id)
    return jsonify({
        "anime": a.to_dict(),
        "genres": a.genre_list(),
        "seasons": {str(s): [e.to_dict() for e in eps] for s, eps in sorted(seasons.items())},
        "favorite": svc.is_favorite(a.id),
        "comments": svc.comment_threads(a.id),
    })

@bp.route("/anime/<slug>/watch/<int:season>/<int:episode>")
def watch(slug: str, season: int, episode: int):
    svc = current_service()
    res = svc.watch(slug, season, episode)
    return jsonify({
        "anime": res["anime"].to_dict(),
        "episode": res["episode"].to_dict(),
        "previous": res["previous"].to_dict() if res["previous"] else None,
        "next": res["next"].to_dict() if res["next"] else None,
        "progress": res["progress"].to_dict(),
        "suggestions": [a.to_dict() for a in res["suggestions"]],
    })

# -----------------------
# Favorites / progress
# -----------------------
@bp.route("/favorites")
def favorites():
    svc = current_service()
    return jsonify([a.to_dict() for a in svc.list_favorites()])

@bp.route("/favorites/<anime_id>", methods=["POST"])
def favorite_toggle(anime_id: str):
    svc = current_service()
    return jsonify(anime_id=anime_id, favorite=svc.toggle_favorite(anime_id))

@bp.route("/continue-watching")
def continue_watching():
    svc = current_service()
    items = svc.continue_watching(limit=_int_arg("limit", None))
    return jsonify([_watch_item(i) for i in items])

@bp.route("/history")
def history():
    svc = current_service()
    return jsonify([_watch_item(i) for i in svc.watch_history()])

# -----------------------
# Comments
# -----------------------
@bp.route("/anime/<anime_id>/comments", methods=["POST"])
def comment_new(anime_id: str):
    svc = current_service()
    payload = _payload()
    c = svc.post_comment(anime_id, payload.get("content", ""), payload.get("parent_id") or None)
    return jsonify(c.to_doc()), 201

@bp.route("/comments/<comment_id>", methods=["DELETE"])
def comment_delete(comment_id: str):
    svc = current_service()
    return jsonify(removed=svc.delete_comment(comment_id))

# -----------------------
# Profile
# -----------------------
@bp.route("/profile", methods=["GET", "POST"])
def profile():
    svc = current_service()
    if request.method == "POST":
        payload = _payload()
        svc.update_username(payload.get("username", ""))
    return jsonify(svc.get_profile().to_doc())
