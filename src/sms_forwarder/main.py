from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Final

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .config import Settings, get_settings
from .email_dispatch import EmailDispatcher, get_email_dispatcher
from .pipeline import forward_message
from .sms import InboundSms, PolicyUpdate
from .store import ConfigStore, get_config_store
from .twilio_auth import SIGNATURE_HEADER, AuthenticationError, verify_twilio_request, webhook_url

logger = logging.getLogger(__name__)

# Empty TwiML: Twilio is satisfied and sends no reply SMS
EMPTY_TWIML: Final[str] = "<Response></Response>"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: pick the email transport once for the whole process
    configure_logging(get_settings().log_level)
    get_email_dispatcher()
    yield


app = FastAPI(title="sms-forwarder", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def empty_twiml() -> Response:
    return Response(content=EMPTY_TWIML, media_type="application/xml")


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{field}: {err['msg']}")
    return "Invalid payload: " + "; ".join(parts)


# --- Routes ---


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/config")
def read_config(store: ConfigStore = Depends(get_config_store)) -> JSONResponse:
    """Current forwarding policy (created with defaults on first access)."""
    return JSONResponse(store.read().to_wire())


@app.post("/config")
async def update_config(
    request: Request,
    store: ConfigStore = Depends(get_config_store),
) -> JSONResponse:
    """
    Replace the forwarding policy.

    Accepts JSON:

      { "enabled": true, "allowedSenderE164": "+1 416 555 1234", "destinationEmail": "me@example.com" }

    The sender is normalised before it is stored. Nothing is written when
    the payload is invalid.
    """
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"ok": False, "error": "Invalid payload: body must be JSON"}, status_code=400)

    try:
        update = PolicyUpdate.model_validate(data)
    except ValidationError as e:
        return JSONResponse({"ok": False, "error": _validation_message(e)}, status_code=400)

    policy = update.to_policy()
    try:
        await run_in_threadpool(store.write, policy)
    except OSError as e:
        logger.exception("Could not persist forwarding config to %s", store.path)
        raise HTTPException(status_code=500, detail="Could not save configuration") from e

    logger.info(
        "Forwarding config updated (enabled=%s, sender=%s)",
        policy.enabled,
        policy.allowed_sender or "<none>",
    )
    return JSONResponse({"ok": True, "config": policy.to_wire()})


@app.post("/twilio/sms")
async def twilio_sms(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: ConfigStore = Depends(get_config_store),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> Response:
    """
    Twilio inbound SMS webhook.

    Behaviour:
      - reject anything not signed with our Twilio auth token
      - forward the SMS by email when forwarding is enabled and the sender
        is the allow-listed number
      - otherwise (and on email failures) answer with empty TwiML, so Twilio
        neither retries nor replies
    """
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    # 1. Authenticate before anything else is touched
    if not settings.twilio_auth_token:
        # Misconfiguration; safer to refuse than to trust unsigned input.
        logger.error("TWILIO_AUTH_TOKEN is not configured; refusing webhook")
        raise HTTPException(status_code=500, detail="TWILIO_AUTH_TOKEN not configured")

    url = webhook_url(
        protocol=settings.twilio_webhook_protocol,
        host=settings.twilio_webhook_host or request.headers.get("host", ""),
        path=request.url.path,
        query=request.url.query,
    )
    try:
        verify_twilio_request(
            settings.twilio_auth_token,
            url,
            params,
            request.headers.get(SIGNATURE_HEADER),
        )
    except AuthenticationError as e:
        raise HTTPException(status_code=403, detail="Invalid Twilio signature") from e

    # 2. Fresh policy snapshot for this request
    policy = await run_in_threadpool(store.read)

    # 3. Gate + dispatch; every outcome gets the same acknowledgement
    await forward_message(policy, InboundSms.from_twilio_form(params), dispatcher)
    return empty_twiml()
