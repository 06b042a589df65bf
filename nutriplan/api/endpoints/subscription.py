from fastapi import APIRouter, Depends, HTTPException, Request, Header
from fastapi.responses import JSONResponse
from typing import Any, Dict, List, Optional
from nutriplan.api.deps import get_current_user, get_mercadopago_service
from nutriplan.schemas.user import AuthenticatedUser
from nutriplan.schemas.subscription import (
    ExpiredCheckResponse,
    SubscriptionCancelResponse,
    SubscriptionCreate,
    SubscriptionCreateResponse,
    SubscriptionFeaturesResponse,
    UserSubscriptionResponse,
)
from nutriplan.services.mercadopago import MercadoPagoService
from nutriplan.core.subscription import get_device_limit, get_effective_plan, get_feature_map
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Subscription"])

@router.post("/create",
    response_model=SubscriptionCreateResponse,
    response_model_exclude_none=True,
    description="Create or change the current user's subscription",
    responses={
        200: {"description": "Free plan activated or checkout created"},
        400: {"description": "Missing fields, invalid plan or Mercado Pago error"},
        401: {"description": "Not authenticated"},
        403: {"description": "userId does not match the token"}
    })
async def create_subscription(
    subscription_data: SubscriptionCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
) -> SubscriptionCreateResponse:
    """
    Subscribe the current user to a plan.

    Parameters:
    - plan: "free", "simple" or "premium"
    - userId: must match the authenticated user
    - card_token_id, payer_email, payment_method_id, issuer_id: optional,
      switch paid plans to transparent checkout with a tokenized card

    Returns either:
    - Free plan: redirect to the thank-you page
    - Recurring checkout: init_point to send the user to Mercado Pago
    - Card checkout: payment id and status
    """
    result = await mercadopago_service.create_subscription(current_user, subscription_data)
    return SubscriptionCreateResponse(**result)

@router.get("/me",
    response_model=UserSubscriptionResponse,
    description="Get current user's subscription information"
)
async def get_my_subscription(
    current_user: AuthenticatedUser = Depends(get_current_user),
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
) -> UserSubscriptionResponse:
    """Get the current user's subscription plan and status."""
    subscription = await mercadopago_service.get_user_subscription(current_user.id)
    return UserSubscriptionResponse(
        user_id=subscription.user_id,
        plan_type=subscription.plan_type,
        status=subscription.status,
        effective_plan=get_effective_plan(subscription.model_dump()),
        mercadopago_preapproval_id=subscription.mercadopago_preapproval_id,
        last_payment_date=subscription.last_payment_date,
        next_payment_date=subscription.next_payment_date,
        cancelled_at=subscription.cancelled_at
    )

@router.get("/features",
    response_model=SubscriptionFeaturesResponse,
    description="List the features unlocked by the current user's plan"
)
async def get_my_features(
    current_user: AuthenticatedUser = Depends(get_current_user),
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
) -> SubscriptionFeaturesResponse:
    subscription = await mercadopago_service.get_user_subscription(current_user.id)
    plan = get_effective_plan(subscription.model_dump())
    return SubscriptionFeaturesResponse(
        plan=plan,
        status=subscription.status,
        features=get_feature_map(plan),
        device_limit=get_device_limit(plan)
    )

@router.post("/cancel",
    response_model=SubscriptionCancelResponse,
    description="Cancel the current user's subscription",
    responses={
        200: {"description": "Subscription cancelled"},
        401: {"description": "Not authenticated"},
        404: {"description": "User has no subscription"}
    })
async def cancel_subscription(
    current_user: AuthenticatedUser = Depends(get_current_user),
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
) -> SubscriptionCancelResponse:
    result = await mercadopago_service.cancel_subscription(current_user.id)
    return SubscriptionCancelResponse(**result)

@router.api_route("/check-expired",
    methods=["GET", "POST"],
    response_model=ExpiredCheckResponse,
    description="Expire overdue subscriptions (called by cron)"
)
async def check_expired_subscriptions(
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
) -> ExpiredCheckResponse:
    expired_count = await mercadopago_service.check_expired_subscriptions()
    return ExpiredCheckResponse(
        expired_count=expired_count,
        message=f"Successfully checked subscriptions. {expired_count} subscription(s) expired."
    )

@router.get("/payment-methods",
    description="List Mercado Pago payment methods",
    responses={
        200: {"description": "Payment methods as returned by Mercado Pago"},
        401: {"description": "Not authenticated"}
    })
async def list_payment_methods(
    current_user: AuthenticatedUser = Depends(get_current_user),
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
) -> List[Dict[str, Any]]:
    return await mercadopago_service.list_payment_methods()

async def process_webhook(
    request: Request,
    signature: Optional[str],
    mercadopago_service: MercadoPagoService
) -> JSONResponse:
    try:
        payload = await request.json()
    except ValueError:
        logger.error("Invalid payload in webhook")
        raise HTTPException(status_code=400, detail="Invalid payload")

    if not isinstance(payload, dict):
        logger.error("Webhook payload is not a JSON object")
        raise HTTPException(status_code=400, detail="Invalid payload")

    # Always 200 once the signature is accepted so Mercado Pago stops retrying
    result = await mercadopago_service.handle_webhook(payload, signature)
    return JSONResponse(content=result)

@router.post("/webhook",
    description="Handle Mercado Pago webhook notifications",
    responses={
        200: {"description": "Notification processed (see success flag)"},
        400: {"description": "Invalid payload"},
        401: {"description": "Invalid signature"}
    })
async def mercadopago_webhook(
    request: Request,
    x_signature: Optional[str] = Header(None, alias="x-signature"),
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
):
    """Handle Mercado Pago notifications for payments and preapprovals."""
    return await process_webhook(request, x_signature, mercadopago_service)
