from fastapi import FastAPI, Request, Header, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from supabase import acreate_client
from typing import Optional
from nutriplan.core.config import settings
from nutriplan.api.deps import get_mercadopago_service
from nutriplan.api.endpoints import subscription, recipes
from nutriplan.services.mercadopago import MercadoPagoService
from nutriplan.services.scheduler import SubscriptionScheduler
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="NutriPlan API")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS_LIST,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "apikey", "x-client-info"],
)

# Include routers
app.include_router(subscription.router, prefix="/subscription")
app.include_router(recipes.router, prefix="/recipes")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}

# Direct webhook endpoint (Mercado Pago notification URL points at /webhook)
@app.post("/webhook")
async def mercadopago_webhook_direct(
    request: Request,
    x_signature: Optional[str] = Header(None, alias="x-signature"),
    mercadopago_service: MercadoPagoService = Depends(get_mercadopago_service)
):
    """Direct webhook endpoint for Mercado Pago notifications"""
    return await subscription.process_webhook(request, x_signature, mercadopago_service)

@app.on_event("startup")
async def startup_supabase_client():
    app.supabase = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)

    if not settings.MERCADOPAGO_ACCESS_TOKEN:
        logger.warning("MERCADOPAGO_ACCESS_TOKEN not set. Paid subscriptions will fail.")

    # Initialize and start the subscription scheduler
    try:
        app.scheduler = SubscriptionScheduler(app.supabase)
        app.scheduler.start()
    except Exception as e:
        logger.warning(f"Failed to start subscription scheduler: {e}")
        logger.warning("Subscriptions will only expire through /subscription/check-expired")

@app.on_event("shutdown")
async def shutdown_scheduler():
    if hasattr(app, 'scheduler'):
        try:
            app.scheduler.shutdown()
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}")
