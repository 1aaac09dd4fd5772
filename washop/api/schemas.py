# Тела запросов клиентских эндпоинтов

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel


class InitializePaymentRequest(BaseModel):
    order_id: str
    email: str
    amount: Optional[Decimal] = None
    callback_url: Optional[str] = None


class SubscribeRequest(BaseModel):
    shop_id: str
    plan_id: str
    plan_name: Optional[str] = None
    amount: Optional[Decimal] = None
    email: str
    callback_url: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    reference: Optional[str] = None
    # Flutterwave отдаёт id числом
    transaction_id: Optional[Union[int, str]] = None


class CodeRequest(BaseModel):
    code: str


class ConfirmReceiptRequest(BaseModel):
    code: Optional[str] = None
    order_id: Optional[str] = None


class PaymentProofRequest(BaseModel):
    payment_type: str
    reference_id: str
    shop_id: str
    amount: Decimal
    proof_image_url: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None


class ReviewProofRequest(BaseModel):
    approve: bool
    admin_notes: Optional[str] = None
