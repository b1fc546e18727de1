"""
Twilio webhook router.
Acknowledges every callback immediately and forwards in the background.
"""

import json
import time
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from loguru import logger

from ..core.exceptions import PayloadTooLargeError
from .forwarder import WebhookForwarder
from .models import TWIML_EMPTY_RESPONSE, TWIML_MEDIA_TYPE, InboundMessage

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_forwarder(request: Request) -> WebhookForwarder:
    """Forwarder built once at startup by the application factory."""
    return request.app.state.forwarder


def twiml_response(status_code: int = 200) -> Response:
    """The fixed empty TwiML acknowledgment."""
    return Response(
        content=TWIML_EMPTY_RESPONSE,
        status_code=status_code,
        media_type=TWIML_MEDIA_TYPE,
    )


def create_webhook_router() -> APIRouter:
    """
    Create the Twilio webhook router.

    Returns:
        Router serving POST /twilio-webhook
    """
    router = APIRouter(tags=["webhooks"])

    @router.post("/twilio-webhook")
    async def handle_twilio_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        forwarder: WebhookForwarder = Depends(get_forwarder),
    ) -> Response:
        """
        Handle a Twilio messaging webhook.

        The empty TwiML response goes out first; the forward to the main
        app runs as a background task after the response is sent, so its
        outcome never changes what Twilio sees.
        """
        started_at = time.perf_counter()

        try:
            request_data = await _parse_request_data(request)
            message = InboundMessage.from_webhook_data(request_data)

            logger.info(
                "📨 Received webhook from {} to {}", message.sender, message.recipient
            )

            background_tasks.add_task(forwarder.forward_message, message, started_at)

            return twiml_response()

        except PayloadTooLargeError:
            # Answered with a 413 by the size limit middleware
            raise

        except Exception as e:
            logger.error("❌ Error processing webhook: {}", e)
            return twiml_response(status_code=500)

    return router


async def _parse_request_data(request: Request) -> dict[str, Any]:
    """
    Parse webhook fields based on content type.

    Args:
        request: FastAPI request object

    Returns:
        Field mapping (empty for an empty body)

    Raises:
        ValueError: If the body is JSON but not an object
    """
    content_type = request.headers.get("content-type", "")

    if any(form_type in content_type for form_type in FORM_CONTENT_TYPES):
        form_data = await request.form()
        return dict(form_data)

    body = await request.body()
    if not body.strip():
        return {}

    json_data = json.loads(body)
    if not isinstance(json_data, dict):
        raise ValueError("Webhook JSON body must be an object")

    return json_data
