"""Seller wallet crediting shared by verify, webhook, receipt and proof approval."""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from washop import config
from washop.models.payment import Payment, PaymentState
from washop.models.wallet import SellerWallet

CENT = Decimal("0.01")


def split_amount(amount) -> Tuple[Decimal, Decimal]:
    """Return ``(platform_fee, seller_amount)`` for ``amount``."""
    amount = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    fee = (amount * config.PLATFORM_FEE_PERCENT / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return fee, amount - fee


async def get_wallet(db: AsyncSession, shop_id: str) -> Optional[SellerWallet]:
    result = await db.execute(
        select(SellerWallet).filter_by(shop_id=shop_id).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def credit_seller_once(db: AsyncSession, payment_id: str) -> bool:
    """Credit the seller for a successful payment exactly once.

    The ``credited_to_seller`` latch flip and the wallet increment are written
    in a single transaction; whichever caller flips the latch first performs
    the credit, every other caller gets ``False``.
    """
    now = datetime.utcnow()
    latch = await db.execute(
        update(Payment)
        .where(
            Payment.id == payment_id,
            Payment.status == PaymentState.SUCCESS,
            Payment.credited_to_seller.is_(False),
        )
        .values(credited_to_seller=True, credited_at=now)
        .execution_options(synchronize_session=False)
    )
    if latch.rowcount != 1:
        # уже начислено или платёж ещё не успешен
        await db.commit()
        return False

    row = (
        await db.execute(
            select(Payment.shop_id, Payment.seller_amount).where(Payment.id == payment_id)
        )
    ).one()
    shop_id, seller_amount = row.shop_id, row.seller_amount

    if not await _increment_wallet(db, shop_id, seller_amount):
        try:
            async with db.begin_nested():
                db.add(
                    SellerWallet(
                        shop_id=shop_id,
                        balance=seller_amount,
                        total_earned=seller_amount,
                    )
                )
        except IntegrityError:
            # кошелёк успели создать параллельно
            if not await _increment_wallet(db, shop_id, seller_amount):
                await db.rollback()
                raise

    await db.commit()
    logging.info(
        "Credited %s to wallet of shop %s for payment %s", seller_amount, shop_id, payment_id
    )
    return True


async def _increment_wallet(db: AsyncSession, shop_id: str, amount: Decimal) -> bool:
    result = await db.execute(
        update(SellerWallet)
        .where(SellerWallet.shop_id == shop_id)
        .values(
            balance=SellerWallet.balance + amount,
            total_earned=SellerWallet.total_earned + amount,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def find_successful_payment(db: AsyncSession, order_id: str) -> Optional[Payment]:
    result = await db.execute(
        select(Payment)
        .filter_by(order_id=order_id, status=PaymentState.SUCCESS)
        .order_by(Payment.created_at)
    )
    return result.scalars().first()
