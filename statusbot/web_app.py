"""
web_app.py

FastAPI application exposing the status over HTTP and WebSocket.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse

from statusbot.errors import ValidationError
from statusbot.gateway import check_api_key, error_payload, now_iso, outcome_payload, parse_status_payload
from statusbot.reconciler import ApplyOutcome, StatusReconciler

logger = logging.getLogger(__name__)

ACTIONS = ("setStatus", "removeStatus", "getStatus", "setAboutMe")


def outcome_response(outcome: ApplyOutcome, action: str) -> tuple[int, dict[str, Any]]:
    """Map an ApplyOutcome to an HTTP status code and JSON body."""
    if outcome.applied:
        return 200, outcome_payload(outcome, action)
    if outcome.deferred:
        return 202, outcome_payload(outcome, action)
    return 500, outcome_payload(outcome, action)


async def handle_action(reconciler: StatusReconciler, action: str, data: dict[str, Any]) -> tuple[int, dict[str, Any]]:
    """
    Run one control action against the reconciler.

    Args:
        reconciler: Status owner
        action: One of ACTIONS
        data: Request body / WebSocket message

    Returns:
        Tuple of (HTTP-style status code, JSON result)
    """
    current = reconciler.get_desired()
    try:
        if action == "setStatus":
            status = parse_status_payload(data.get("status"), about_me=current.about_me if current else None)
            return outcome_response(await reconciler.set_desired(status), "Status set successfully")

        if action == "removeStatus":
            return outcome_response(await reconciler.clear(), "Status removed successfully")

        if action == "setAboutMe":
            text = data.get("text")
            if not isinstance(text, str) or not text.strip():
                raise ValidationError("Please provide text for the About Me section")
            return outcome_response(await reconciler.set_about_me(text.strip()), "About Me updated")

        if action == "getStatus":
            return 200, {
                "success": True,
                "status": current.to_dict() if current else None,
                "description": current.describe() if current else None,
                "timestamp": now_iso(),
            }

    except ValidationError as e:
        return 400, error_payload(str(e))

    return 400, error_payload(f"Unknown action {action!r}, expected one of: {', '.join(ACTIONS)}")


def bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return None


def create_app(reconciler: StatusReconciler, api_key: str = "") -> FastAPI:
    """
    Build the control API.

    Args:
        reconciler: Status owner the routes act on
        api_key: Shared key required by the control routes; empty disables them
    """
    app = FastAPI(title="Discord Status Bot")
    app.state.reconciler = reconciler
    app.state.api_key = api_key
    app.state.started_at = time.monotonic()

    async def read_body(request: Request) -> dict[str, Any]:
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Request body must be JSON")
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")
        return body

    def authorize(request: Request, body: dict[str, Any] | None = None) -> None:
        """Raise 503 when control is disabled, 401 on a missing or wrong key."""
        if not app.state.api_key:
            raise HTTPException(status_code=503, detail="Status control is disabled (CONTROL_API_KEY not set)")
        supplied = bearer_token(request) or (body or {}).get("token")
        if not isinstance(supplied, str) or not check_api_key(app.state.api_key, supplied):
            raise HTTPException(status_code=401, detail="Invalid or missing token")

    async def run(request: Request, action: str) -> JSONResponse:
        body = await read_body(request)
        authorize(request, body)
        if body.get("userId"):
            logger.debug(f"Ignoring userId {body['userId']!r}, only the bot's own status is managed")
        status_code, payload = await handle_action(reconciler, action, body)
        if status_code >= 400:
            logger.warning(f"{action} via HTTP failed: {payload.get('error')}")
        return JSONResponse(payload, status_code=status_code)

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        """Liveness text."""
        return "Discord Status Bot"

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        ready = reconciler.presence.is_ready()
        return {
            "status": "ok",
            "message": "Bot is connected" if ready else "Bot is not connected to Discord",
            "botStatus": "online" if ready else "offline",
            "uptime": round(time.monotonic() - app.state.started_at, 3),
        }

    @app.get("/status")
    async def get_status(request: Request):
        """Current desired status."""
        authorize(request)
        _, payload = await handle_action(reconciler, "getStatus", {})
        return payload

    @app.post("/set-status")
    async def set_status(request: Request):
        """Set the bot status."""
        return await run(request, "setStatus")

    @app.post("/remove-status")
    async def remove_status(request: Request):
        """Clear the bot status."""
        return await run(request, "removeStatus")

    @app.post("/set-about-me")
    async def set_about_me(request: Request):
        """Set the bot's About Me section."""
        return await run(request, "setAboutMe")

    @app.websocket("/ws")
    async def websocket_control(websocket: WebSocket):
        """JSON control channel; every message carries its action and token."""
        await websocket.accept()
        logger.info("WebSocket client connected")
        await websocket.send_json({"connected": True, "timestamp": now_iso()})

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))

                # Binary frames carry "bytes" instead of "text"
                text = message.get("text")
                if text is None:
                    reply = error_payload("Message must be JSON text, not binary")
                else:
                    reply = await handle_message(text)
                await websocket.send_json(reply)
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected")

    async def handle_message(message: str) -> dict[str, Any]:
        try:
            data = json.loads(message)
        except ValueError:
            return error_payload("Message must be JSON")
        if not isinstance(data, dict):
            return error_payload("Message must be a JSON object")

        if not app.state.api_key:
            return error_payload("Status control is disabled (CONTROL_API_KEY not set)")
        token = data.get("token")
        if not isinstance(token, str) or not check_api_key(app.state.api_key, token):
            return error_payload("Invalid or missing token")

        action = data.get("action")
        status_code, payload = await handle_action(reconciler, action, data)
        if status_code >= 400:
            logger.warning(f"{action} via WebSocket failed: {payload.get('error')}")
        return {"action": action, **payload}

    return app
