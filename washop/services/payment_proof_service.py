"""Manual bank-transfer path: buyers or sellers upload a proof, an admin reviews it."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from messaging.telegram import send_admin_alert
from washop import config
from washop.errors import InvalidRequest, NotFound, PaymentProofNotFound
from washop.models.order import Order, OrderPaymentStatus
from washop.models.payment import Payment, PaymentState
from washop.models.payment_proof import PaymentProof, ProofStatus
from washop.models.subscription import Subscription
from washop.providers.base import ProviderTransaction
from washop.services import reconciliation_service, subscription_service, wallet_service
from washop.services.best_effort import best_effort

PAYMENT_TYPES = ("order", "subscription")
BANK_TRANSFER = "bank_transfer"


async def submit_proof(db: AsyncSession, payment_type: str, reference_id: str, shop_id: str,
                       amount, proof_image_url: str = None, customer_name: str = None,
                       customer_phone: str = None) -> PaymentProof:
    if payment_type not in PAYMENT_TYPES:
        raise InvalidRequest("payment_type must be 'order' or 'subscription'")

    model = Order if payment_type == "order" else Subscription
    target = await db.get(model, reference_id)
    if target is None or target.shop_id != shop_id:
        raise NotFound(f"{payment_type.title()} not found for this shop")
    if payment_type == "order" and target.payment_status == OrderPaymentStatus.PAID:
        raise InvalidRequest("Order is already paid")

    amount = Decimal(str(amount))
    if amount <= 0:
        raise InvalidRequest("Amount must be greater than 0")

    proof = PaymentProof(
        payment_type=payment_type,
        reference_id=reference_id,
        shop_id=shop_id,
        amount=amount,
        proof_image_url=proof_image_url,
        customer_name=customer_name,
        customer_phone=customer_phone,
        status=ProofStatus.PENDING,
    )
    db.add(proof)
    await db.commit()
    await db.refresh(proof)
    logging.info("Payment proof %s submitted for %s %s", proof.id, payment_type, reference_id)

    await best_effort(
        f"alert admins about proof {proof.id}",
        send_admin_alert(
            f"🧾 New {payment_type} payment proof: {amount} for {reference_id}\n"
            f"Proof id: {proof.id}"
        ),
    )
    return proof


async def list_proofs(db: AsyncSession, status: Optional[str] = None) -> List[PaymentProof]:
    query = select(PaymentProof).order_by(PaymentProof.created_at.desc())
    if status:
        query = query.filter_by(status=status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def review_proof(db: AsyncSession, proof_id: str, approve: bool, reviewer_id: str,
                       admin_notes: str = None) -> PaymentProof:
    """Approve or reject a pending proof. A proof is reviewed only once.

    Approval applies its payment first and only then records the review, so
    a failed apply leaves the proof pending and the admin can retry it.
    """
    proof = (
        await db.execute(
            select(PaymentProof).filter_by(id=proof_id).execution_options(populate_existing=True)
        )
    ).scalars().first()
    if proof is None:
        raise PaymentProofNotFound()
    if proof.status != ProofStatus.PENDING:
        raise InvalidRequest("Payment proof has already been reviewed")

    if approve:
        if proof.payment_type == "order":
            await _apply_order_proof(db, proof)
        else:
            await _apply_subscription_proof(db, proof)

    new_status = ProofStatus.APPROVED if approve else ProofStatus.REJECTED
    result = await db.execute(
        update(PaymentProof)
        .where(PaymentProof.id == proof_id, PaymentProof.status == ProofStatus.PENDING)
        .values(
            status=new_status,
            reviewed_by=reviewer_id,
            reviewed_at=datetime.utcnow(),
            admin_notes=admin_notes,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount != 1:
        raise InvalidRequest("Payment proof has already been reviewed")
    logging.info("Payment proof %s %s by %s", proof_id, new_status, reviewer_id)

    return (
        await db.execute(
            select(PaymentProof).filter_by(id=proof_id).execution_options(populate_existing=True)
        )
    ).scalars().one()


async def _apply_order_proof(db: AsyncSession, proof: PaymentProof) -> None:
    """Record the transfer as a ``bank_transfer`` payment and reconcile it.

    Safe to re-run: the payment reference is derived from the proof id.
    """
    order = await db.get(Order, proof.reference_id, populate_existing=True)
    if order is None:
        raise NotFound("Order not found for this proof")

    reference = f"BANK-{proof.id[:8]}"
    existing = await db.scalar(select(Payment).filter_by(provider_reference=reference))
    if order.payment_status == OrderPaymentStatus.PAID and (
        existing is None or existing.status != PaymentState.SUCCESS
    ):
        raise InvalidRequest("Order is already paid")

    if existing is None:
        fee, seller_amount = wallet_service.split_amount(proof.amount)
        db.add(
            Payment(
                order_id=order.id,
                shop_id=order.shop_id,
                provider=BANK_TRANSFER,
                provider_reference=reference,
                amount=proof.amount,
                platform_fee=fee,
                seller_amount=seller_amount,
                status=PaymentState.PENDING,
            )
        )
        await db.commit()

    transaction = ProviderTransaction(
        reference=reference,
        status="success",
        amount=Decimal(proof.amount),
        transaction_id=proof.id,
        currency=config.CURRENCY,
        metadata={"order_id": order.id, "shop_id": order.shop_id, "payment_type": "order"},
    )
    result = await reconciliation_service.reconcile_order_payment(db, transaction, BANK_TRANSFER)
    if result is None or result.duplicate:
        raise InvalidRequest("Order is already paid")


async def _apply_subscription_proof(db: AsyncSession, proof: PaymentProof) -> None:
    subscription = await db.get(Subscription, proof.reference_id)
    plan = subscription.plan if subscription else None
    await subscription_service.activate_subscription(db, proof.shop_id, plan)
