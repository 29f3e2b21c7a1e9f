"""Webhook API routes for payment provider callbacks."""

import logging
from typing import Any

from fastapi import APIRouter, Request, status

from storefront.api.deps import ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/nowpayments",
    status_code=status.HTTP_200_OK,
    summary="Handle NOWPayments IPN",
    description="Receives NOWPayments instant payment notifications. Requires a valid x-nowpayments-sig.",
)
async def nowpayments_webhook(request: Request, services: ServicesDep) -> dict[str, Any]:
    """Handle a NOWPayments IPN.

    The signature is verified over the raw body, then the payment status
    is re-read from the NOWPayments API before the order changes.

    Raises:
        AuthenticationError: 401 if the signature is missing or invalid.
    """
    payload = await request.body()
    signature = request.headers.get("x-nowpayments-sig")
    logger.info("Received NOWPayments IPN (%d bytes)", len(payload))
    return await services.checkout.handle_nowpayments_ipn(payload, signature)


@router.post(
    "/chargily",
    status_code=status.HTTP_200_OK,
    summary="Handle Chargily webhooks",
    description="Receives Chargily checkout events. Requires a valid signature header.",
)
async def chargily_webhook(request: Request, services: ServicesDep) -> dict[str, Any]:
    """Handle a Chargily checkout event.

    Raises:
        AuthenticationError: 401 if the signature is missing or invalid.
    """
    payload = await request.body()
    signature = request.headers.get("signature")
    logger.info("Received Chargily webhook (%d bytes)", len(payload))
    return await services.checkout.handle_chargily_webhook(payload, signature)
