import mercadopago
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from supabase import AsyncClient
from nutriplan.core.config import settings
from nutriplan.core.exceptions import (
    InvalidPlanError,
    InvalidSignatureError,
    MissingPaymentDataError,
    PaymentProviderError,
    SubscriptionNotFoundError,
    UserMismatchError,
)
from nutriplan.core.security import verify_webhook_signature
from nutriplan.core.subscription import (
    SubscriptionLevel,
    SubscriptionStatus,
    add_months,
    get_plan,
    map_preapproval_status,
)
from nutriplan.models.subscription import Subscription
from nutriplan.schemas.subscription import SubscriptionCreate, WebhookNotification
from nutriplan.schemas.user import AuthenticatedUser
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = "subscriptions"
PROFILES_TABLE = "perfis_usuario"

def _now() -> datetime:
    return datetime.now(timezone.utc)

class MercadoPagoService:
    def __init__(self, db: AsyncClient):
        self.db = db
        self.sdk = mercadopago.SDK(settings.MERCADOPAGO_ACCESS_TOKEN or "")

    async def create_subscription(self, user: AuthenticatedUser, data: SubscriptionCreate) -> Dict[str, Any]:
        """
        Start a subscription for the authenticated user.

        Free plans are activated directly in the database. Paid plans go
        through a Mercado Pago preapproval (recurring checkout) or, when a
        card token is supplied, a one-off transparent-checkout payment.

        Returns:
            Dict matching SubscriptionCreateResponse
        """
        if not data.plan or not data.user_id:
            raise HTTPException(status_code=400, detail="Plan and userId are required")

        if user.id != data.user_id:
            logger.warning(f"User {user.id} tried to subscribe on behalf of {data.user_id}")
            raise UserMismatchError()

        selected_plan = get_plan(data.plan)
        if not selected_plan:
            raise InvalidPlanError()

        try:
            existing = await self._get_subscription(data.user_id)

            if data.plan == SubscriptionLevel.FREE:
                return await self._activate_free_plan(data.user_id, existing)

            if data.is_card_checkout:
                return await self._create_card_payment(data, selected_plan, existing)

            return await self._create_preapproval(user, data, selected_plan, existing)

        except HTTPException:
            raise
        except PaymentProviderError as e:
            logger.error(f"Mercado Pago error creating subscription for {data.user_id}: {e}")
            raise HTTPException(status_code=400, detail=f"Mercado Pago error: {e.message}")
        except Exception as e:
            logger.error(f"Error creating subscription for {data.user_id}: {e}")
            import traceback
            logger.error(f"Traceback: {traceback.format_exc()}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def _activate_free_plan(self, user_id: str, existing: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        await self._save_subscription(user_id, {
            "plan_type": SubscriptionLevel.FREE,
            "status": SubscriptionStatus.ACTIVE,
            "next_payment_date": None,
            "updated_at": _now().isoformat(),
        }, existing)

        logger.info(f"Free plan activated for user {user_id}")
        return {
            "success": True,
            "message": "Free plan activated",
            "redirect": settings.THANK_YOU_URL,
        }

    async def _create_preapproval(
        self,
        user: AuthenticatedUser,
        data: SubscriptionCreate,
        plan: Dict[str, Any],
        existing: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        preapproval_body = {
            "reason": f"Assinatura {plan['name']} - MENU LIST",
            "auto_recurring": {
                "frequency": 1,
                "frequency_type": "months",
                "transaction_amount": plan["price"],
                "currency_id": settings.SUBSCRIPTION_CURRENCY,
            },
            "back_url": settings.THANK_YOU_URL,
            "payer_email": user.email,
            "status": "pending",
        }

        logger.info(f"Creating preapproval for user {data.user_id} on plan {data.plan}")
        preapproval = self._unwrap(self.sdk.preapproval().create(preapproval_body))

        if not preapproval or not preapproval.get("id"):
            logger.error(f"Mercado Pago response missing ID: {preapproval}")
            raise ValueError("Mercado Pago response missing ID")

        preapproval_id = str(preapproval["id"])
        await self._save_subscription(data.user_id, {
            "plan_type": data.plan,
            "status": SubscriptionStatus.PENDING,
            "mercadopago_preapproval_id": preapproval_id,
            "next_payment_date": None,
        }, existing)

        logger.info(f"Created preapproval {preapproval_id} for user {data.user_id}")
        return {
            "success": True,
            "init_point": preapproval.get("init_point"),
            "preapproval_id": preapproval_id,
        }

    async def _create_card_payment(
        self,
        data: SubscriptionCreate,
        plan: Dict[str, Any],
        existing: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        if not all([data.card_token_id, data.payer_email, data.payment_method_id, data.issuer_id]):
            raise MissingPaymentDataError()

        payment_body = {
            "transaction_amount": plan["price"],
            "token": data.card_token_id,
            "description": f"Assinatura {plan['name']}",
            "installments": 1,
            "payment_method_id": data.payment_method_id,
            "issuer_id": data.issuer_id,
            "payer": {
                "email": data.payer_email,
            },
            "three_d_secure_mode": "optional",
            "capture": True,
            "binary_mode": False,
            "external_reference": data.user_id,
            "metadata": {
                "user_id": data.user_id,
                "plan_type": data.plan,
            },
        }

        logger.info(f"Creating card payment for user {data.user_id} on plan {data.plan}")
        payment = self._unwrap(self.sdk.payment().create(payment_body))

        approved = payment.get("status") == "approved"
        payment_id = str(payment["id"]) if payment.get("id") is not None else None

        # The payment id stands in for the preapproval id on card checkouts
        await self._save_subscription(data.user_id, {
            "plan_type": data.plan,
            "status": SubscriptionStatus.ACTIVE if approved else SubscriptionStatus.PENDING,
            "mercadopago_preapproval_id": payment_id,
            "next_payment_date": None,
        }, existing)

        logger.info(f"Card payment {payment_id} for user {data.user_id}: {payment.get('status')}")
        return {
            "success": True,
            "id": payment_id,
            "status": payment.get("status"),
            "status_detail": payment.get("status_detail"),
            "three_ds_info": payment.get("three_ds_info"),
            "redirect": settings.THANK_YOU_URL if approved else None,
        }

    async def list_payment_methods(self) -> List[Dict[str, Any]]:
        """Return Mercado Pago's payment methods unchanged."""
        try:
            return self._unwrap(self.sdk.payment_methods().list_all())
        except Exception as e:
            logger.error(f"Error fetching payment methods: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def get_user_subscription(self, user_id: str) -> Subscription:
        """Get the user's subscription row, defaulting to an active free plan"""
        try:
            subscription = await self._get_subscription(user_id)
        except Exception as e:
            logger.error(f"Error getting subscription for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Error retrieving subscription status")

        if subscription is None:
            return Subscription(
                user_id=user_id,
                plan_type=SubscriptionLevel.FREE,
                status=SubscriptionStatus.ACTIVE
            )
        return Subscription(**subscription)

    async def check_expired_subscriptions(self) -> int:
        """Expire overdue subscriptions through the database procedure."""
        try:
            result = await self.db.rpc("check_expired_subscriptions").execute()
        except Exception as e:
            logger.error(f"Error checking subscriptions: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

        expired_count = int(result.data or 0)
        logger.info(f"Checked subscriptions. Expired count: {expired_count}")
        return expired_count

    async def cancel_subscription(self, user_id: str) -> Dict[str, Any]:
        """Cancel a user's subscription locally and at Mercado Pago"""
        try:
            logger.info(f"Attempting to cancel subscription for user: {user_id}")

            subscription = await self._get_subscription(user_id)
            if not subscription:
                raise SubscriptionNotFoundError()

            preapproval_id = subscription.get("mercadopago_preapproval_id")
            if preapproval_id:
                try:
                    self._unwrap(self.sdk.preapproval().update(preapproval_id, {"status": "cancelled"}))
                    logger.info(f"Cancelled preapproval {preapproval_id}")
                except Exception as e:
                    # Card checkouts store a payment id here, which has no preapproval to cancel
                    logger.warning(f"Could not cancel preapproval {preapproval_id}: {e}")

            now = _now().isoformat()
            await self.db.table(SUBSCRIPTIONS_TABLE).update({
                "status": SubscriptionStatus.CANCELLED,
                "cancelled_at": now,
                "updated_at": now,
            }).eq("user_id", user_id).execute()
            await self._update_profile_status(user_id, active=False)

            logger.info(f"Cancelled subscription for user {user_id}")
            return {
                "success": True,
                "message": "Subscription cancelled",
                "status": SubscriptionStatus.CANCELLED,
            }

        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error cancelling subscription for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def handle_webhook(self, payload: Dict[str, Any], signature: Optional[str]) -> Dict[str, Any]:
        """
        Handle Mercado Pago notifications.

        Processing errors are reported in the body with success=False so the
        caller can still answer 200 and stop Mercado Pago from retrying.
        """
        if signature and settings.MERCADOPAGO_WEBHOOK_SECRET:
            if not verify_webhook_signature(signature, payload, settings.MERCADOPAGO_WEBHOOK_SECRET):
                logger.error("Invalid signature in webhook")
                raise InvalidSignatureError()

        try:
            notification = WebhookNotification(**payload)
            logger.info(
                f"Webhook received: type={notification.type} action={notification.action} "
                f"id={notification.resource_id or notification.id}"
            )

            # Handle the event
            if notification.type == "payment":
                await self._handle_payment_event(notification)
            elif notification.type in ("subscription_preapproval", "preapproval"):
                await self._handle_preapproval_event(notification)
            else:
                logger.info(f"Unhandled event type: {notification.type}")

        except Exception as e:
            logger.error(f"Error processing webhook: {e}")
            return {"success": False, "error": str(e)}

        return {"success": True}

    async def _handle_payment_event(self, notification: WebhookNotification):
        """Activate the subscription an approved payment belongs to"""
        payment_id = notification.resource_id
        if not payment_id:
            logger.warning("Payment notification without data.id")
            return

        try:
            payment = self._unwrap(self.sdk.payment().get(payment_id))
        except PaymentProviderError as e:
            logger.error(f"Failed to fetch payment {payment_id} from Mercado Pago: {e}")
            return

        if payment.get("status") != "approved":
            logger.info(f"Payment {payment_id} not approved (status: {payment.get('status')})")
            return

        metadata = payment.get("metadata") or {}
        subscription = None

        preapproval_id = metadata.get("preapproval_id") or payment.get("preapproval_id")
        if preapproval_id:
            subscription = await self._get_subscription_by_preapproval(str(preapproval_id))

        if subscription is None:
            user_id = metadata.get("user_id") or payment.get("external_reference")
            if user_id:
                subscription = await self._get_subscription(str(user_id))

        if not subscription:
            logger.warning(f"No subscription found for approved payment {payment_id}")
            return

        now = _now()
        update = {
            "status": SubscriptionStatus.ACTIVE,
            "mercadopago_subscription_id": payment_id,
            "last_payment_date": now.isoformat(),
            "next_payment_date": add_months(now).isoformat(),
            "updated_at": now.isoformat(),
        }
        if get_plan(metadata.get("plan_type")):
            update["plan_type"] = metadata["plan_type"]

        await self.db.table(SUBSCRIPTIONS_TABLE).update(update).eq("id", subscription["id"]).execute()
        await self._update_profile_status(subscription["user_id"], active=True)

        logger.info(f"User {subscription['user_id']} plan activated via payment {payment_id}")

    async def _handle_preapproval_event(self, notification: WebhookNotification):
        """Sync the local subscription with the preapproval's status"""
        preapproval_id = notification.resource_id
        if not preapproval_id:
            logger.warning("Preapproval notification without data.id")
            return

        try:
            preapproval = self._unwrap(self.sdk.preapproval().get(preapproval_id))
        except PaymentProviderError as e:
            logger.error(f"Failed to fetch preapproval {preapproval_id} from Mercado Pago: {e}")
            return

        subscription = await self._get_subscription_by_preapproval(preapproval_id)
        if not subscription:
            logger.warning(f"No subscription found for preapproval {preapproval_id}")
            return

        new_status = map_preapproval_status(preapproval.get("status"), subscription.get("status"))
        now = _now().isoformat()
        update = {
            "status": new_status,
            "updated_at": now,
        }
        if new_status == SubscriptionStatus.CANCELLED:
            update["cancelled_at"] = now

        await self.db.table(SUBSCRIPTIONS_TABLE).update(update).eq("id", subscription["id"]).execute()
        await self._update_profile_status(
            subscription["user_id"],
            active=new_status == SubscriptionStatus.ACTIVE
        )

        logger.info(f"Subscription {subscription['id']} sync state: {new_status}")

    async def _get_subscription(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = await self.db.table(SUBSCRIPTIONS_TABLE).select("*").eq("user_id", user_id).limit(1).execute()
        return result.data[0] if result.data else None

    async def _get_subscription_by_preapproval(self, preapproval_id: str) -> Optional[Dict[str, Any]]:
        result = await (
            self.db.table(SUBSCRIPTIONS_TABLE)
            .select("*")
            .eq("mercadopago_preapproval_id", preapproval_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def _save_subscription(self, user_id: str, values: Dict[str, Any], existing: Optional[Dict[str, Any]]):
        if existing:
            await self.db.table(SUBSCRIPTIONS_TABLE).update(values).eq("user_id", user_id).execute()
        else:
            await self.db.table(SUBSCRIPTIONS_TABLE).insert({"user_id": user_id, **values}).execute()

    async def _update_profile_status(self, user_id: str, active: bool):
        await self.db.table(PROFILES_TABLE).update(
            {"plan_status": "active" if active else "inactive"}
        ).eq("id", user_id).execute()

    def _unwrap(self, result: Dict[str, Any]) -> Any:
        """Return the SDK response body, raising on an error status."""
        status = result.get("status", 500)
        response = result.get("response")
        if status >= 400:
            raise PaymentProviderError(status, response)
        return response
