# washop/api/payment_router.py

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from washop.api.deps import get_db
from washop.api.schemas import InitializePaymentRequest, SubscribeRequest, VerifyPaymentRequest
from washop.errors import ConfigurationError, InvalidRequest, InvalidSignature
from washop.providers.registry import get_provider
from washop.services import payment_service

router = APIRouter()


# ---------- ИНИЦИАЛИЗАЦИЯ ОПЛАТЫ ЗАКАЗА ----------
@router.post("/payments/{provider}/initialize")
async def initialize_payment(
    provider: str, body: InitializePaymentRequest, db: AsyncSession = Depends(get_db)
):
    """Создаёт платёж у провайдера и возвращает ссылку на страницу оплаты."""
    adapter = get_provider(provider)
    return await payment_service.initialize_order_payment(
        db,
        adapter,
        order_id=body.order_id,
        email=body.email,
        callback_url=body.callback_url,
        amount=body.amount,
    )


# ---------- ОПЛАТА ПОДПИСКИ ----------
@router.post("/payments/{provider}/subscribe")
async def subscribe(provider: str, body: SubscribeRequest, db: AsyncSession = Depends(get_db)):
    adapter = get_provider(provider)
    return await payment_service.initialize_subscription_payment(
        db,
        adapter,
        shop_id=body.shop_id,
        plan_id=body.plan_id,
        email=body.email,
        callback_url=body.callback_url,
        amount=body.amount,
        plan_name=body.plan_name,
    )


# ---------- ПРОВЕРКА ПОСЛЕ РЕДИРЕКТА ----------
@router.post("/payments/{provider}/verify")
async def verify_payment(provider: str, body: VerifyPaymentRequest, db: AsyncSession = Depends(get_db)):
    adapter = get_provider(provider)
    transaction_id = str(body.transaction_id) if body.transaction_id is not None else None
    return await payment_service.verify_payment(
        db, adapter, reference=body.reference, transaction_id=transaction_id
    )


# ---------- ВЕБХУК ПРОВАЙДЕРА ----------
@router.post("/webhooks/{provider}", response_class=PlainTextResponse)
async def provider_webhook(provider: str, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Подпись проверяется по сырому телу до разбора JSON.
    После проверки подписи всегда отвечаем 200, иначе провайдер будет ретраить.
    """
    body = await request.body()
    client_host = request.client.host if request.client else None

    try:
        adapter = get_provider(provider)
        outcome = await payment_service.handle_webhook(db, adapter, body, request.headers)
    except InvalidSignature:
        await payment_service.report_invalid_signature(provider, client_host)
        return PlainTextResponse("Invalid signature", status_code=401)
    except ConfigurationError:
        logging.exception("%s webhook received but provider is not configured", provider)
        return PlainTextResponse("Error", status_code=500)
    except (InvalidRequest, ValueError, AttributeError):
        logging.error("Unreadable %s webhook payload", provider)
        return PlainTextResponse("Bad request", status_code=400)

    logging.info("%s webhook processed: %s", provider, outcome)
    return PlainTextResponse("OK", status_code=200)
