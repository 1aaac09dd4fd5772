"""Payment initialization, client verification and webhook handling."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from messaging.telegram import send_admin_alert
from washop import config
from washop.errors import InvalidRequest, OrderNotFound, ShopNotFound, VerificationFailed
from washop.models.order import Order
from washop.models.payment import Payment, PaymentState
from washop.models.shop import Shop
from washop.providers.base import PaymentProvider, WebhookEvent
from washop.services import reconciliation_service, wallet_service
from washop.services.best_effort import best_effort


def _to_amount(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidRequest("Invalid amount")
    if amount <= 0:
        raise InvalidRequest("Amount must be greater than 0")
    return amount


async def initialize_order_payment(db: AsyncSession, provider: PaymentProvider, order_id: str,
                                   email: str, callback_url: str = None, amount=None) -> Dict[str, Any]:
    # ConfigurationError до любых запросов
    provider.ensure_configured()

    order = await db.get(Order, order_id)
    if order is None:
        raise OrderNotFound()

    charge = _to_amount(amount) or Decimal(order.total)
    reference = provider.make_reference(order.id)
    metadata = {
        "order_id": order.id,
        "shop_id": order.shop_id,
        "order_number": order.order_number,
        "payment_type": "order",
    }
    initialized = await provider.initialize(
        amount=charge,
        currency=config.CURRENCY,
        reference=reference,
        redirect_url=callback_url,
        email=email,
        metadata=metadata,
        title=f"Payment for Order #{order.order_number}",
    )

    fee, seller_amount = wallet_service.split_amount(charge)
    db.add(
        Payment(
            order_id=order.id,
            shop_id=order.shop_id,
            provider=provider.name,
            provider_reference=initialized.reference,
            amount=charge,
            platform_fee=fee,
            seller_amount=seller_amount,
            status=PaymentState.PENDING,
        )
    )
    try:
        await db.commit()
    except SQLAlchemyError:
        # Платёж всё равно можно провести: сверка восстановит строку по metadata
        await db.rollback()
        logging.exception("Error creating payment record for %s", initialized.reference)

    return {
        "success": True,
        "authorization_url": initialized.hosted_url,
        "reference": initialized.reference,
        "access_code": initialized.access_code,
    }


async def initialize_subscription_payment(db: AsyncSession, provider: PaymentProvider, shop_id: str,
                                          plan_id: str, email: str, callback_url: str = None,
                                          amount=None, plan_name: str = None) -> Dict[str, Any]:
    provider.ensure_configured()

    shop = await db.get(Shop, shop_id)
    if shop is None:
        raise ShopNotFound()

    charge = _to_amount(amount) or config.PLAN_PRICES.get(plan_id)
    if charge is None:
        raise InvalidRequest(f"Unknown plan: {plan_id}")

    plan_name = plan_name or plan_id.title()
    reference = provider.make_reference(shop.id, subscription=True)
    initialized = await provider.initialize(
        amount=charge,
        currency=config.CURRENCY,
        reference=reference,
        redirect_url=callback_url,
        email=email,
        metadata={
            "shop_id": shop.id,
            "plan_id": plan_id,
            "plan_name": plan_name,
            "payment_type": "subscription",
        },
        title=f"{plan_name} Plan Subscription - {shop.name}",
    )
    return {
        "success": True,
        "authorization_url": initialized.hosted_url,
        "reference": initialized.reference,
        "access_code": initialized.access_code,
    }


async def verify_payment(db: AsyncSession, provider: PaymentProvider, reference: str = None,
                         transaction_id: str = None) -> Dict[str, Any]:
    logging.info("Verifying %s payment: reference=%s id=%s", provider.name, reference, transaction_id)
    transaction = await provider.verify(reference=reference, transaction_id=transaction_id)

    if not transaction.succeeded:
        raise VerificationFailed(f"Payment {transaction.status or 'failed'}")
    if reference and transaction.reference != reference:
        logging.error("Reference mismatch: asked %s, provider returned %s", reference, transaction.reference)
        raise VerificationFailed("Transaction reference does not match")

    result = await reconciliation_service.reconcile(db, transaction, provider.name)
    response = {
        "success": True,
        "status": transaction.status,
        "amount": float(transaction.amount),
        "reference": transaction.reference,
        "payment_type": transaction.payment_type,
    }
    if result is not None and result.redemption_code:
        response["redemption_code"] = result.redemption_code
    return response


async def handle_webhook(db: AsyncSession, provider: PaymentProvider, body: bytes,
                         headers: Mapping[str, str]) -> str:
    """Reconcile a provider push.

    Signature errors propagate (the router answers 401). Anything after that is
    logged and acknowledged so the provider does not retry.
    """
    event: WebhookEvent = provider.parse_webhook(body, headers)
    logging.info("%s webhook event: %s", provider.name, event.event)

    if not event.is_charge_success:
        return f"ignored: {event.event}"

    transaction = event.transaction
    try:
        if provider.reverify_webhooks:
            transaction = await provider.verify(
                reference=transaction.reference, transaction_id=transaction.transaction_id
            )
            if not transaction.succeeded:
                logging.error("Webhook transaction %s failed re-verification", transaction.reference)
                return "verification failed"

        result = await reconciliation_service.reconcile(db, transaction, provider.name)
    except Exception:
        logging.exception("Error reconciling %s webhook %s", provider.name, transaction.reference)
        return "error"

    if result is None:
        return "unmatched"
    return "ok"


async def report_invalid_signature(provider_name: str, client_host: str = None) -> None:
    logging.warning("[SECURITY] Invalid %s webhook signature from %s", provider_name, client_host)
    await best_effort(
        "alert admins about invalid webhook signature",
        send_admin_alert(f"⚠️ Invalid {provider_name} webhook signature from {client_host or 'unknown'}"),
    )
