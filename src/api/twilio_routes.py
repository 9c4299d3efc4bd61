"""Twilio Voice callbacks.

This module exposes one endpoint per callback class:
- ``/webhook``: Twilio asks for the next TwiML (call answered, <Gather> finished, <Redirect>).
- ``/status``: status callback for the parent call.
- ``/dial``: <Dial> action callback when a dialed leg ends.
- ``/inbound``: voice URL of a provisioned number; starts the inbound script.
- ``/amd``: asynchronous answering machine detection result.

Webhook responses are held open until the script submits its next response.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from api.dependencies import get_callback_router
from calls.errors import RoutingWarning
from calls.router import CallbackRouter

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _ack(status_code: int = 204) -> Response:
    return Response(status_code=status_code)


async def _form_fields(request: Request) -> dict[str, Any]:
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


def _routing_warning(kind: str, exc: RoutingWarning) -> Response:
    LOGGER.warning("%s callback not routed: %s", kind, exc.detail)
    return _ack(exc.status_code)


@router.post("/webhook")
async def twilio_webhook(
    request: Request,
    callbacks: CallbackRouter = Depends(get_callback_router),
) -> Response:
    fields = await _form_fields(request)
    try:
        twiml = await callbacks.webhook(fields)
    except RoutingWarning as exc:
        return _routing_warning("Webhook", exc)
    return _twiml_response(twiml) if twiml is not None else _ack()


@router.post("/status")
async def twilio_status_callback(
    request: Request,
    callbacks: CallbackRouter = Depends(get_callback_router),
) -> Response:
    fields = await _form_fields(request)
    try:
        await callbacks.status(fields)
    except RoutingWarning as exc:
        return _routing_warning("Status", exc)
    return _ack()


@router.post("/dial")
async def twilio_dial_callback(
    request: Request,
    callbacks: CallbackRouter = Depends(get_callback_router),
) -> Response:
    fields = await _form_fields(request)
    try:
        twiml = await callbacks.dial(fields)
    except RoutingWarning as exc:
        return _routing_warning("Dial", exc)
    return _twiml_response(twiml) if twiml is not None else _ack()


@router.post("/inbound")
async def twilio_inbound_call(
    request: Request,
    callbacks: CallbackRouter = Depends(get_callback_router),
) -> Response:
    fields = await _form_fields(request)
    try:
        twiml = await callbacks.inbound(fields)
    except RoutingWarning as exc:
        return _routing_warning("Inbound", exc)
    return _twiml_response(twiml)


@router.post("/amd")
async def twilio_async_amd_callback(
    request: Request,
    callbacks: CallbackRouter = Depends(get_callback_router),
) -> Response:
    fields = await _form_fields(request)
    try:
        await callbacks.async_detection(fields)
    except RoutingWarning as exc:
        return _routing_warning("Async AMD", exc)
    return _ack()
