"""One reconciliation routine for every path that learns a payment succeeded.

Verify (browser redirect), webhook (provider push) and bank-transfer approval
all end up here with a canonical :class:`ProviderTransaction`. Each step is a
guarded transition, so running the routine any number of times, in any
order, has the effect of running it once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from messaging.telegram import send_admin_alert
from messaging.whatsapp import send_whatsapp_message
from washop import config
from washop.errors import VerificationFailed
from washop.models.order import Order, OrderPaymentStatus, OrderStatus
from washop.models.payment import Payment, PaymentState
from washop.models.payment_proof import PaymentProof, ProofStatus
from washop.providers.base import ProviderTransaction
from washop.services import redemption_service, subscription_service, wallet_service
from washop.services.best_effort import best_effort


@dataclass
class ReconcileResult:
    payment_type: str
    order_id: Optional[str] = None
    shop_id: Optional[str] = None
    newly_paid: bool = False
    redemption_code: Optional[str] = None
    credited: bool = False
    # заказ уже был оплачен другим платежом
    duplicate: bool = False


async def reconcile(db: AsyncSession, transaction: ProviderTransaction, provider_name: str) -> Optional[ReconcileResult]:
    if transaction.payment_type == "subscription":
        return await reconcile_subscription_payment(db, transaction)
    return await reconcile_order_payment(db, transaction, provider_name)


async def _get_payment(db: AsyncSession, reference: str) -> Optional[Payment]:
    result = await db.execute(
        select(Payment)
        .filter_by(provider_reference=reference)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _recover_payment(db: AsyncSession, transaction: ProviderTransaction,
                           provider_name: str) -> Optional[Payment]:
    """Rebuild the local Payment row from provider metadata.

    Initialization may have lost its insert; the order id is taken from the
    metadata round-tripped through the provider, never from the reference.
    """
    order_id = transaction.metadata.get("order_id")
    if not order_id:
        logging.error("No order_id in metadata for reference %s", transaction.reference)
        return None

    order = await db.get(Order, order_id)
    if order is None:
        logging.error("Order %s from metadata of %s not found", order_id, transaction.reference)
        return None

    fee, seller_amount = wallet_service.split_amount(transaction.amount)
    payment = Payment(
        order_id=order.id,
        shop_id=order.shop_id,
        provider=provider_name,
        provider_reference=transaction.reference,
        amount=transaction.amount,
        platform_fee=fee,
        seller_amount=seller_amount,
        status=PaymentState.PENDING,
    )
    db.add(payment)
    try:
        await db.commit()
    except IntegrityError:
        # строку успел создать параллельный обработчик
        await db.rollback()
        return await _get_payment(db, transaction.reference)
    logging.warning("Recovered missing payment row for reference %s", transaction.reference)
    return payment


def _check_currency(transaction: ProviderTransaction) -> None:
    # bank_transfer транзакции приходят без валюты
    if transaction.currency and transaction.currency.upper() != config.CURRENCY.upper():
        logging.error(
            "Currency mismatch for %s: provider reported %s, expected %s",
            transaction.reference, transaction.currency, config.CURRENCY,
        )
        raise VerificationFailed("Payment currency does not match")


async def reconcile_order_payment(db: AsyncSession, transaction: ProviderTransaction,
                                  provider_name: str) -> Optional[ReconcileResult]:
    """Apply a successful order payment.

    The order's ``payment_status`` transition is the gate: only the payment
    that moves the order to paid is flipped to success and credited. A second
    successful attempt for an already paid order is reported as a duplicate
    and left pending for a manual refund.
    """
    payment = await _get_payment(db, transaction.reference)
    if payment is None:
        payment = await _recover_payment(db, transaction, provider_name)
        if payment is None:
            return None

    _check_currency(transaction)
    if Decimal(transaction.amount) < Decimal(payment.amount):
        logging.error(
            "Amount mismatch for %s: provider reported %s, expected %s",
            transaction.reference, transaction.amount, payment.amount,
        )
        raise VerificationFailed("Paid amount is lower than the order amount")

    payment_id, order_id, shop_id = payment.id, payment.order_id, payment.shop_id
    result = ReconcileResult(payment_type="order", order_id=order_id, shop_id=shop_id)

    claimed = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.payment_status != OrderPaymentStatus.PAID)
        .values(
            payment_status=OrderPaymentStatus.PAID,
            status=OrderStatus.PROCESSING,
            payment_method=provider_name,
        )
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 1:
        await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status != PaymentState.SUCCESS)
            .values(status=PaymentState.SUCCESS, provider_transaction_id=transaction.transaction_id)
            .execution_options(synchronize_session=False)
        )
        result.newly_paid = True
        logging.info("Payment %s marked successful (order %s)", transaction.reference, order_id)
    else:
        status = await db.scalar(select(Payment.status).where(Payment.id == payment_id))
        if status != PaymentState.SUCCESS:
            # заказ уже оплачен другим платежом
            await db.commit()
            result.duplicate = True
            logging.error(
                "Duplicate payment %s for already paid order %s; not credited",
                transaction.reference, order_id,
            )
            await best_effort(
                f"alert admins about duplicate payment {transaction.reference}",
                send_admin_alert(
                    f"⚠️ Duplicate payment {transaction.reference} ({transaction.amount}) "
                    f"for already paid order {order_id}. Refund required."
                ),
            )
            return result
    await db.commit()

    # Ниже всё идемпотентно и выполняется и при повторном вызове,
    # чтобы добить шаги, прерванные предыдущей попыткой
    code, created = await redemption_service.ensure_code(db, order_id)
    if code is not None:
        result.redemption_code = code.code
        if created:
            await best_effort(
                f"send redemption code for order {order_id}",
                _notify_customer(db, order_id, code.code),
            )

    result.credited = await wallet_service.credit_seller_once(db, payment_id)
    return result


async def _notify_customer(db: AsyncSession, order_id: str, code: str) -> None:
    result = await db.execute(
        select(Order).options(selectinload(Order.customer), selectinload(Order.shop)).filter_by(id=order_id)
    )
    order = result.scalars().first()
    if order is None or order.customer is None or not order.customer.phone:
        return
    shop_name = order.shop.name if order.shop else "the seller"
    await send_whatsapp_message(
        order.customer.phone,
        f"✅ Payment received for order #{order.order_number} at {shop_name}.\n\n"
        f"Your delivery code is *{code}*. Share it with the seller only when "
        f"you receive your order.",
    )


async def _already_billed(db: AsyncSession, reference: str) -> bool:
    result = await db.execute(select(PaymentProof.id).filter_by(transaction_reference=reference))
    return result.first() is not None


def _billing_record(subscription, shop_id: str, transaction: ProviderTransaction) -> PaymentProof:
    return PaymentProof(
        payment_type="subscription",
        reference_id=subscription.id,
        shop_id=shop_id,
        amount=transaction.amount,
        status=ProofStatus.APPROVED,
        reviewed_at=datetime.utcnow(),
        admin_notes=f"Paid online ({transaction.transaction_id or transaction.reference})",
        transaction_reference=transaction.reference,
    )


async def reconcile_subscription_payment(db: AsyncSession,
                                         transaction: ProviderTransaction) -> Optional[ReconcileResult]:
    """Activate the subscription and write its billing row in one commit.

    The billing row carries the provider reference under a unique constraint,
    so it doubles as the idempotency marker for repeated deliveries.
    """
    shop_id = transaction.metadata.get("shop_id")
    if not shop_id:
        logging.error("No shop_id in metadata for subscription %s", transaction.reference)
        return None

    result = ReconcileResult(payment_type="subscription", shop_id=shop_id)
    if await _already_billed(db, transaction.reference):
        logging.info("Subscription payment %s already reconciled", transaction.reference)
        return result

    _check_currency(transaction)
    try:
        await subscription_service.activate_subscription(
            db,
            shop_id,
            transaction.metadata.get("plan_id"),
            billing_record=lambda subscription: _billing_record(subscription, shop_id, transaction),
        )
    except IntegrityError:
        if await _already_billed(db, transaction.reference):
            logging.info("Subscription payment %s reconciled by a parallel handler", transaction.reference)
            return result
        raise

    result.newly_paid = True
    logging.info("Subscription activated for shop %s", shop_id)
    return result
