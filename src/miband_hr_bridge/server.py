from __future__ import annotations
import logging
from hypercorn.asyncio import serve
from hypercorn.config import Config
from quart import Quart, jsonify, request
from .config import ServerCfg
from .store import LiveValueStore, Snapshot

# Presentation of the freshness verdict; the store only knows fresh/stale
STATUS_LIVE = ("live", "#27ae60")
STATUS_LOST = ("signal lost", "#e74c3c")

def present(snap: Snapshot) -> dict:
    out = snap.to_dict()
    out["status"], out["status_color"] = STATUS_LIVE if snap.fresh else STATUS_LOST
    return out

def create_app(store: LiveValueStore) -> Quart:
    app = Quart(__name__)
    logging.getLogger("quart.app").setLevel(logging.ERROR)

    @app.route("/data")
    async def data_route():
        return jsonify(present(store.snapshot()))

    @app.route("/data/wait")
    async def wait_route():
        raw = request.args.get("generation", "0")
        try:
            seen = int(raw)
        except ValueError:
            return jsonify({"error": f"generation must be an integer, got {raw!r}"}), 400
        # A generation from before a restart is ahead of ours; wait for our next update instead
        seen = min(seen, store.generation)
        snap = await store.wait_for_change(seen)
        return jsonify(present(snap))

    @app.route("/health")
    async def health():
        return "", 200

    return app

async def serve_app(app: Quart, cfg: ServerCfg, shutdown_trigger=None):
    config = Config()
    config.bind = [f"{cfg.host}:{cfg.port}"]
    config.accesslog = None
    if shutdown_trigger is None:
        await serve(app, config)
    else:
        await serve(app, config, shutdown_trigger=shutdown_trigger)
