import json
import logging
import os
import sys

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
API_DIR = os.path.join(BASE_DIR, "apps", "api")
if API_DIR not in sys.path:
    sys.path.append(API_DIR)


def _import_error_app(detail: str):
    """Answer every HTTP request with a JSON 500 naming the import failure."""
    body = json.dumps({"error": detail}).encode("utf-8")

    async def app(scope, receive, send):
        if scope["type"] != "http":
            return
        await send(
            {
                "type": "http.response.start",
                "status": 500,
                "headers": [(b"content-type", b"application/json")],
            }
        )
        await send({"type": "http.response.body", "body": body})

    return app


try:
    # Routes already live under /api, so the app is served as-is.
    from insights.main import app  # type: ignore
except Exception as exc:
    detail = f"{type(exc).__name__}: {exc}"
    logging.getLogger(__name__).error("API import failed: %s", detail)
    app = _import_error_app(detail)
