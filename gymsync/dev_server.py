from __future__ import annotations

import copy
import logging
import uuid
from typing import Any

from flask import Flask, Response, request

from .config import Settings


logger = logging.getLogger(__name__)

SAMPLE_DATA: dict[str, Any] = {
    "groups": ["back", "shoulders", "biceps", "triceps", "legs"],
    "exercises": {
        "back": [
            {"id": "1", "name": "Lat pulldown", "group": "back", "series": 4, "repetitions": 12},
            {"id": "2", "name": "Bent-over row", "group": "back", "series": 3, "repetitions": 12},
            {"id": "3", "name": "Single-arm row", "group": "back", "series": 3, "repetitions": 10},
            {"id": "4", "name": "Deadlift", "group": "back", "series": 3, "repetitions": 8},
        ],
        "shoulders": [
            {"id": "5", "name": "Overhead press", "group": "shoulders", "series": 4, "repetitions": 10},
            {"id": "6", "name": "Lateral raise", "group": "shoulders", "series": 3, "repetitions": 15},
        ],
    },
    "history": [
        {
            "title": "11.01.2023",
            "data": [
                {"id": "h1", "name": "Lat pulldown", "group": "back", "hour": "08:10"},
                {"id": "h2", "name": "Single-arm row", "group": "back", "hour": "08:25"},
            ],
        },
        {
            "title": "12.01.2023",
            "data": [
                {"id": "h3", "name": "Overhead press", "group": "shoulders", "hour": "18:02"},
            ],
        },
    ],
    "user": {
        "id": "1",
        "name": "Demo Athlete",
        "email": "demo@example.com",
        "password": "123456",
        "avatar": None,
    },
}


def _error(message: str, status_code: int = 400) -> tuple[dict, int]:
    return {"status": "error", "message": message}, status_code


def create_app(data: dict[str, Any] | None = None) -> Flask:
    """In-memory stand-in for the gym API, for local runs and client tests."""
    app = Flask(__name__)
    store = copy.deepcopy(data if data is not None else SAMPLE_DATA)
    avatars: dict[str, tuple[bytes, str]] = {}
    app.config["GYM_STORE"] = store
    app.config["GYM_AVATARS"] = avatars

    @app.get("/groups")
    def groups_get() -> tuple[list, int]:
        return list(store["groups"]), 200

    @app.get("/exercises/bygroup/<string:group>")
    def exercises_by_group_get(group: str) -> tuple[list, int]:
        return list(store["exercises"].get(group.lower(), [])), 200

    @app.get("/history")
    def history_get() -> tuple[list, int]:
        return list(store["history"]), 200

    @app.patch("/users/avatar")
    def users_avatar_patch() -> tuple[dict, int]:
        upload = request.files.get("avatar")
        if upload is None or not upload.filename:
            return _error("Send an image in the avatar field.")
        reference = f"{uuid.uuid4().hex}-{upload.filename}"
        avatars[reference] = (upload.read(), upload.mimetype or "application/octet-stream")
        store["user"]["avatar"] = reference
        logger.info("Stored avatar %s (%s bytes).", reference, len(avatars[reference][0]))
        return {"avatar": reference}, 200

    @app.put("/users")
    def users_put() -> tuple[dict, int]:
        body = request.get_json(silent=True) or {}
        name = body.get("name")
        if not isinstance(name, str) or not name.strip():
            return _error("Name is required.")
        user = store["user"]
        password = body.get("password")
        if password:
            old_password = body.get("old_password")
            if not old_password:
                return _error("Enter the old password to set a new one.")
            if old_password != user["password"]:
                return _error("The old password does not match.")
            user["password"] = password
        user["name"] = name.strip()
        return {"status": "ok"}, 200

    @app.get("/avatar/<string:reference>")
    def avatar_get(reference: str):
        stored = avatars.get(reference)
        if stored is None:
            return _error("Avatar not found.", 404)
        content, mimetype = stored
        return Response(content, mimetype=mimetype)

    return app


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    app = create_app()
    logger.info("Dev API listening on port %s", settings.dev_server_port)
    app.run(host="0.0.0.0", port=settings.dev_server_port)


if __name__ == "__main__":
    main()
