"""
Subscription Scheduler Service

Runs the daily subscription expiry check in the background.
Uses APScheduler for background job scheduling.
"""

from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import HTTPException
from supabase import AsyncClient
import logging

from nutriplan.core.config import settings
from nutriplan.services.mercadopago import MercadoPagoService

logger = logging.getLogger(__name__)


class SubscriptionScheduler:
    """Service for scheduling periodic subscription maintenance"""

    def __init__(self, db: AsyncClient):
        self.db = db
        self.mercadopago_service = MercadoPagoService(db)
        self.scheduler: Optional[AsyncIOScheduler] = None

    def start(self):
        """Start the scheduler and register all jobs"""
        if not settings.ENABLE_SCHEDULER:
            logger.warning("Scheduler disabled by configuration. Subscriptions will only expire on demand.")
            return

        self.scheduler = AsyncIOScheduler()
        self._register_expiry_checks()
        self.scheduler.start()
        logger.info("Subscription scheduler started successfully")

    def shutdown(self):
        """Shutdown the scheduler gracefully"""
        if self.scheduler:
            self.scheduler.shutdown(wait=True)
            logger.info("Subscription scheduler shut down")

    def _register_expiry_checks(self):
        """Register the daily subscription expiry check"""
        self.scheduler.add_job(
            self.check_expired_subscriptions,
            trigger=CronTrigger(hour=settings.SUBSCRIPTION_CHECK_HOUR, minute=0),
            id="subscription_expiry_checks",
            name="Expire overdue subscriptions",
            replace_existing=True
        )
        logger.info("Registered subscription expiry job")

    async def check_expired_subscriptions(self) -> int:
        """Expire overdue subscriptions; failures are logged and retried on the next run"""
        try:
            return await self.mercadopago_service.check_expired_subscriptions()
        except HTTPException as e:
            logger.error(f"Scheduled subscription check failed: {e.detail}")
            return 0
