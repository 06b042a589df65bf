from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime

class SubscriptionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    # Transparent checkout (card tokenized on the client)
    card_token_id: Optional[str] = None
    payer_email: Optional[str] = None
    payment_method_id: Optional[str] = None
    issuer_id: Optional[str] = None

    @property
    def is_card_checkout(self) -> bool:
        return bool(self.card_token_id)

class SubscriptionCreateResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    redirect: Optional[str] = None
    # Preapproval (recurring) checkout
    init_point: Optional[str] = None
    preapproval_id: Optional[str] = None
    # Transparent checkout
    id: Optional[str] = None
    status: Optional[str] = None
    status_detail: Optional[str] = None
    three_ds_info: Optional[Dict[str, Any]] = None

class UserSubscriptionResponse(BaseModel):
    user_id: str
    plan_type: str
    status: str
    effective_plan: str
    mercadopago_preapproval_id: Optional[str] = None
    last_payment_date: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

class SubscriptionFeaturesResponse(BaseModel):
    plan: str
    status: Optional[str] = None
    features: Dict[str, bool]
    device_limit: int

class SubscriptionCancelResponse(BaseModel):
    success: bool = True
    message: str
    status: str

class ExpiredCheckResponse(BaseModel):
    success: bool = True
    expired_count: int
    message: str

class WebhookNotification(BaseModel):
    id: Optional[Any] = None
    type: Optional[str] = None
    action: Optional[str] = None
    data: Dict[str, Any] = {}

    @property
    def resource_id(self) -> Optional[str]:
        resource_id = self.data.get("id")
        return str(resource_id) if resource_id is not None else None
