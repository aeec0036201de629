#!/usr/bin/env python3
"""
Maven Web Server
----------------
Serves the landing page, auth screens, the task board UI and a JSON API.

Usage:
    maven-server --host 127.0.0.1 --port 3000 --config maven.yaml

API:
    GET  /api/board        → JSON: { loading, columns, buckets }
    POST /api/board/drop   → JSON body: { source_id, target_id }
                             Returns: { dispatched, succeeded, notifications, board }
    GET  /api/tasks        → JSON: { tasks, count }
    POST /api/tasks        → JSON body: { title, description?, status?, assignee_id? }
    GET  /api/profile      → JSON: profile of the signed-in user
    PUT  /api/profile      → JSON or multipart (fields + avatar file)
    POST /api/auth/sign-up | sign-in | sign-out,  GET /api/auth/session
    POST /functions/create-checkout → { sessionId } | { error }
"""

import argparse
import asyncio
import logging
import os
import secrets
import sys
from dataclasses import dataclass
from functools import wraps

from flask import (
    Flask,
    abort,
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    session as cookie_session,
)

from .auth import AuthClient, AuthError, AuthEvent
from .board.buckets import COLUMNS
from .board.cache import TaskSnapshotCache
from .board.controller import TaskBoardController
from .board.notifications import CollectingSink
from .board.rest_store import RestTaskStore
from .board.schema import DragGesture, TaskStatus
from .board.store import SqliteTaskStore, TaskStore, TaskStoreError, init_schema
from .checkout import bp as checkout_bp
from .config import Config
from .profile import AvatarFile, AvatarStorage, ProfileError, ProfileForm, ProfileService, ProfileStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: Config
    tasks: TaskStore
    cache: TaskSnapshotCache
    profiles: ProfileStore
    avatars: AvatarStorage


def build_task_store(cfg: Config) -> TaskStore:
    if cfg.backend == "rest":
        return RestTaskStore(cfg.rest_url, cfg.rest_key, timeout=cfg.rest_timeout)
    return SqliteTaskStore(cfg.db_path)


def create_app(cfg: Config = None, task_store: TaskStore = None) -> Flask:
    """Build the Flask app. ``task_store`` overrides the configured backend."""
    cfg = cfg or Config.load()
    init_schema(cfg.db_path)

    app = Flask(__name__)
    app.config["MAVEN"] = cfg
    if cfg.secret_key:
        app.secret_key = cfg.secret_key
    else:
        logger.warning("MAVEN_SECRET_KEY not set, sessions won't survive a restart")
        app.secret_key = secrets.token_hex(32)

    tasks = task_store or build_task_store(cfg)
    app.extensions["maven"] = Services(
        config=cfg,
        tasks=tasks,
        cache=TaskSnapshotCache(tasks),
        profiles=ProfileStore(cfg.db_path),
        avatars=AvatarStorage(cfg.avatar_dir, cfg.public_url),
    )
    app.register_blueprint(checkout_bp)
    _register_routes(app)
    return app


def services() -> Services:
    return current_app.extensions["maven"]


# ── Auth ─────────────────────────────────────────────────────────────────────


def _sync_cookie(event: AuthEvent, session) -> None:
    """Mirror auth state changes into the signed cookie."""
    if event == AuthEvent.SIGNED_IN and session:
        cookie_session["user_id"] = session.user.id
    elif event == AuthEvent.SIGNED_OUT:
        cookie_session.pop("user_id", None)


def auth_client() -> AuthClient:
    """Per-request auth client restored from the cookie."""
    auth = AuthClient(services().config.db_path)
    auth.restore(cookie_session.get("user_id"))
    auth.on_auth_state_change(_sync_cookie)
    return auth


def require_session(f):
    """Decorator: reject API requests without a signed-in user."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth = auth_client()
        if auth.get_session() is None:
            return jsonify({"error": "Unauthorized"}), 401
        return f(auth, *args, **kwargs)
    return decorated


# ── Board helpers ────────────────────────────────────────────────────────────


def current_snapshot(refetch: bool = False) -> TaskSnapshotCache:
    """Shared snapshot; loaded on first use and retried after a failed load."""
    cache = services().cache
    if refetch or cache.is_loading or cache.last_error:
        cache.refresh()
    return cache


def board_payload(controller: TaskBoardController, cache: TaskSnapshotCache) -> dict:
    data = controller.render(cache.tasks, cache.is_loading).to_dict()
    if cache.last_error:
        data["error"] = cache.last_error
    return data


# ── Routes ───────────────────────────────────────────────────────────────────


def _register_routes(app: Flask) -> None:

    @app.route("/")
    def index():
        return render_template("index.html")

    @app.route("/login")
    def login():
        if auth_client().get_session():
            return redirect("/dashboard")
        return render_template("login.html", view="sign_in")

    @app.route("/signup")
    def signup():
        if auth_client().get_session():
            return redirect("/dashboard")
        return render_template("login.html", view="sign_up")

    @app.route("/dashboard")
    def dashboard():
        if not auth_client().get_session():
            return redirect("/login")
        return render_template("dashboard.html", columns=COLUMNS)

    # ── Auth API ──

    @app.route("/api/auth/sign-up", methods=["POST"])
    def api_sign_up():
        data = request.get_json(force=True, silent=True) or {}
        try:
            session = auth_client().sign_up(
                data.get("email", ""), data.get("password", ""), data.get("full_name", "")
            )
        except AuthError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"session": session.to_dict()}), 201

    @app.route("/api/auth/sign-in", methods=["POST"])
    def api_sign_in():
        data = request.get_json(force=True, silent=True) or {}
        try:
            session = auth_client().sign_in(data.get("email", ""), data.get("password", ""))
        except AuthError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"session": session.to_dict()})

    @app.route("/api/auth/sign-out", methods=["POST"])
    def api_sign_out():
        auth_client().sign_out()
        return jsonify({"session": None})

    @app.route("/api/auth/session")
    def api_session():
        session = auth_client().get_session()
        return jsonify({"session": session.to_dict() if session else None})

    # ── Board API ──

    @app.route("/api/board")
    @require_session
    def api_board(auth):
        # Each board load refetches so writes from other clients show up.
        cache = current_snapshot(refetch=True)
        controller = TaskBoardController(services().tasks, CollectingSink())
        return jsonify(board_payload(controller, cache))

    @app.route("/api/board/drop", methods=["POST"])
    @require_session
    def api_board_drop(auth):
        data = request.get_json(force=True, silent=True) or {}
        source_id = str(data.get("source_id") or "").strip()
        if not source_id:
            return jsonify({"error": "source_id is required"}), 400

        gesture = DragGesture(
            source_id=source_id,
            target_id=data.get("target_id") or None,
            source_status=data.get("source_status"),
        )
        cache = current_snapshot()
        sink = CollectingSink()
        controller = TaskBoardController(services().tasks, sink)
        controller.subscribe("task_status_updated", cache.invalidate)
        controller.render(cache.tasks, cache.is_loading)

        mutation = asyncio.run(controller.drop(gesture))

        return jsonify({
            "dispatched": mutation is not None,
            "intent": mutation.intent.to_dict() if mutation else None,
            "succeeded": mutation.succeeded if mutation else None,
            "notifications": [n.to_dict() for n in sink.drain()],
            "board": board_payload(controller, cache),
        })

    @app.route("/api/tasks", methods=["GET"])
    @require_session
    def api_tasks(auth):
        try:
            tasks = services().tasks.list_tasks()
        except TaskStoreError as e:
            return jsonify({"error": str(e)}), 502
        return jsonify({"tasks": [t.to_dict() for t in tasks], "count": len(tasks)})

    @app.route("/api/tasks", methods=["POST"])
    @require_session
    def api_create_task(auth):
        data = request.get_json(force=True, silent=True) or {}
        title = str(data.get("title") or "").strip()
        if not title:
            return jsonify({"error": "title is required"}), 400
        status = TaskStatus.from_str(data.get("status") or TaskStatus.PENDING.value)
        if status is None:
            return jsonify({"error": f"Invalid status: {data.get('status')}"}), 400
        try:
            task = services().tasks.create_task(
                title,
                description=data.get("description"),
                status=status,
                assignee_id=data.get("assignee_id"),
            )
        except TaskStoreError as e:
            return jsonify({"error": str(e)}), 400
        services().cache.invalidate()
        return jsonify({"task": task.to_dict()}), 201

    # ── Profile API ──

    @app.route("/api/profile", methods=["GET"])
    @require_session
    def api_profile(auth):
        svc = ProfileService(services().profiles, services().avatars, CollectingSink())
        try:
            profile = svc.load(auth.get_session().user.id)
        except ProfileError as e:
            return jsonify({"error": str(e)}), 404
        return jsonify({"profile": profile.to_dict()})

    @app.route("/api/profile", methods=["PUT"])
    @require_session
    def api_update_profile(auth):
        avatar = None
        if request.mimetype == "multipart/form-data":
            data = {
                "full_name": request.form.get("full_name", ""),
                "bio": request.form.get("bio", ""),
                "settings": {},
            }
            if request.form.get("theme"):
                data["settings"]["theme"] = request.form["theme"]
            if "email_notifications" in request.form:
                data["settings"]["email_notifications"] = request.form["email_notifications"] in ("1", "true", "on")
            upload = request.files.get("avatar")
            if upload and upload.filename:
                avatar = AvatarFile(filename=upload.filename, data=upload.read())
        else:
            data = request.get_json(force=True, silent=True) or {}

        try:
            form = ProfileForm.from_dict(data)
        except ProfileError as e:
            return jsonify({"error": str(e)}), 400

        sink = CollectingSink()
        svc = ProfileService(services().profiles, services().avatars, sink)
        profile = svc.save(auth.get_session().user.id, form, avatar)
        notifications = [n.to_dict() for n in sink.drain()]
        if profile is None:
            return jsonify({"error": notifications[-1]["message"], "notifications": notifications}), 400
        return jsonify({"profile": profile.to_dict(), "notifications": notifications})

    @app.route("/avatars/<path:path>")
    def avatar(path):
        try:
            return send_file(services().avatars.open(path))
        except ProfileError:
            abort(404)

    @app.route("/health")
    def health():
        cfg = services().config
        return jsonify({"status": "ok", "backend": cfg.backend, "db": cfg.db_path})


# ── Main ─────────────────────────────────────────────────────────────────────


def main():
    parser = argparse.ArgumentParser(description="Maven Web Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--config", help="Path to maven.yaml (overrides MAVEN_CONFIG env var)")
    parser.add_argument("--db", help="Path to the SQLite database (overrides MAVEN_DB env var)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [maven] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if args.db:
        os.environ["MAVEN_DB"] = args.db

    cfg = Config.load(args.config)
    app = create_app(cfg)
    logger.info(f"Starting Maven on http://{args.host}:{args.port} (backend={cfg.backend}, db={cfg.db_path})")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
