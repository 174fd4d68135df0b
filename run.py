import json
import os
import logging
from flask import Flask
from app.store import SqliteStore
from app.catalog import RestCatalog
from app.service import AnimeService
from app.web import register_routes, register_error_handlers

DEFAULT_CFG = {
    "database": "data/anime.db",
    "catalog_url": "http://127.0.0.1:54321",
    "catalog_key": "",
    "catalog_timeout": 10,
    "page_size": 12,
    "continue_watching_limit": 6,
    "debug": True,
    "host": "127.0.0.1",
    "port": 5000,
    "logging_level": "INFO"
}

def load_config(path="config.json"):
    if not os.path.exists(path):
        print("config.json not found - using defaults:", DEFAULT_CFG)
        return DEFAULT_CFG.copy()
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except (OSError, ValueError) as e:
        print("Failed to read config.json:", e, " - using defaults")
        return DEFAULT_CFG.copy()
    merged = DEFAULT_CFG.copy()
    merged.update(cfg)
    return merged

cfg = load_config()

def configure_logging(level_name: str, debug: bool = True):
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # quieter werkzeug when not debugging
    logging.getLogger("werkzeug").setLevel(logging.WARNING if not debug else logging.INFO)

def create_app(overrides=None):
    conf = cfg.copy()
    conf.update(overrides or {})
    configure_logging(conf.get("logging_level", "INFO"), conf.get("debug", True))
    logger = logging.getLogger(__name__)
    logger.info("Starting app with config: %s", {k: v for k, v in conf.items() if k not in ("database", "catalog_key")})

    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "dev-key")
    store = SqliteStore(conf["database"])
    catalog = RestCatalog(conf["catalog_url"],
                          api_key=os.environ.get("CATALOG_KEY", conf.get("catalog_key", "")),
                          timeout=conf.get("catalog_timeout", 10))
    service = AnimeService(store, catalog,
                           page_size=conf.get("page_size", 12),
                           continue_limit=conf.get("continue_watching_limit", 6))
    app.config["SERVICE"] = service

    register_routes(app, service)
    register_error_handlers(app)
    return app

if __name__ == "__main__":
    app = create_app()
    # documents are rewritten whole on every change; serve one request at a time
    app.run(host=cfg.get("host", "127.0.0.1"), port=cfg.get("port", 5000), debug=cfg.get("debug", True), threaded=False)
