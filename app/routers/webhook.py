"""
Webhook Router: platform message webhooks.
Deliveries are acknowledged first; routing runs as a background task after
the response has been sent.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from app.dependencies import get_ingestor
from app.services.payload_service import is_structurally_valid
from app.services.webhook_ingestor import ACK_BODY, WebhookIngestor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/webhook")
def verify_webhook(request: Request, ingestor: WebhookIngestor = Depends(get_ingestor)):
    params = request.query_params
    result = ingestor.verify(
        params.get("hub.mode"),
        params.get("hub.verify_token"),
        params.get("hub.challenge"),
    )
    if result.status_code == 200:
        return PlainTextResponse(result.body)
    return Response(status_code=result.status_code)


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    ingestor: WebhookIngestor = Depends(get_ingestor),
):
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Webhook delivery with an unreadable body")
        return Response(status_code=400)

    if not is_structurally_valid(body):
        logger.warning("Webhook delivery is not a JSON object")
        return Response(status_code=400)

    background_tasks.add_task(ingestor.process, body)
    return PlainTextResponse(ACK_BODY)
