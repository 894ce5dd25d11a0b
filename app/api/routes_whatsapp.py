# FILE: app/api/routes_whatsapp.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import requests
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import settings
from app.schemas.whatsapp import WhatsAppInbound, WhatsAppReply
from app.services.whatsapp_state import process_message
from app.utils.validators import normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter()


def _extract_message(body: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """
    Accepts either {"from": ..., "text": ...} or the Cloud API envelope
    entry[].changes[].value.messages[].
    """
    if "from" in body:
        msg = WhatsAppInbound.model_validate(body)
        return msg.from_, msg.text

    for entry in body.get("entry") or []:
        for change in entry.get("changes") or []:
            for m in (change.get("value") or {}).get("messages") or []:
                if m.get("type", "text") != "text":
                    continue
                return m.get("from", ""), (m.get("text") or {}).get("body", "")
    return None


def send_whatsapp_text(to: str, text: str) -> bool:
    """POST the reply to the outbound API. False when not configured or failed."""
    if not settings.WHATSAPP_API_URL:
        return False
    try:
        r = requests.post(
            settings.WHATSAPP_API_URL,
            json={
                "messaging_product": "whatsapp",
                "to": to.lstrip("+"),
                "type": "text",
                "text": {"body": text},
            },
            headers={"Authorization": f"Bearer {settings.WHATSAPP_API_TOKEN}"},
            timeout=settings.WHATSAPP_TIMEOUT_SECONDS,
        )
        r.raise_for_status()
        return True
    except requests.RequestException as e:
        logger.warning("WhatsApp send to %s failed: %s", to, e)
        return False


@router.get("/webhook")
def verify_webhook(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    if (
        hub_mode == "subscribe"
        and settings.WHATSAPP_VERIFY_TOKEN
        and hub_verify_token == settings.WHATSAPP_VERIFY_TOKEN
    ):
        logger.info("WhatsApp webhook verified")
        return PlainTextResponse(hub_challenge or "")
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/webhook", response_model=Optional[WhatsAppReply])
def receive_message(
    body: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    parsed = _extract_message(body)
    if parsed is None:
        # delivery / read receipts carry no message
        return None

    sender, text = parsed
    phone = normalize_phone(sender)
    if not phone:
        raise HTTPException(status_code=400, detail="Sender phone is required")

    reply, state = process_message(db, phone, text)
    delivered = send_whatsapp_text(phone, reply) if settings.WHATSAPP_API_URL else None
    logger.info("WhatsApp %s -> state %s", phone, state)
    return WhatsAppReply(to=phone, reply=reply, state=state, delivered=delivered)
