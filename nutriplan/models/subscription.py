from pydantic import BaseModel
from typing import Optional, Union
from datetime import datetime

class Subscription(BaseModel):
    """Row of the Supabase ``subscriptions`` table."""
    id: Optional[Union[int, str]] = None
    user_id: str
    plan_type: str = "free"  # "free", "simple", "premium"
    status: str = "active"  # "pending", "active", "cancelled", "expired"
    mercadopago_preapproval_id: Optional[str] = None
    mercadopago_subscription_id: Optional[str] = None
    last_payment_date: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
