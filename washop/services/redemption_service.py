"""Redemption code lifecycle: generate, ensure, view, confirm delivery/receipt.

States per code: ``active -> redeemed`` (terminal). Every transition is a
conditional update so a lost race shows up as ``rowcount == 0`` rather than a
double transition.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from washop.errors import CodeNotFound, GenerationError, OrderNotFound, Unauthorized
from washop.models.order import Order, OrderPaymentStatus, OrderStatus
from washop.models.redemption_code import CodeStatus, RedemptionCode
from washop.services import wallet_service

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_GENERATION_ATTEMPTS = 10


def random_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


async def generate_unique_code(db: AsyncSession) -> str:
    """Return a code not used by any existing row (active or redeemed)."""
    for _ in range(MAX_GENERATION_ATTEMPTS):
        candidate = random_code()
        result = await db.execute(select(RedemptionCode.id).filter_by(code=candidate))
        if result.first() is None:
            return candidate
    raise GenerationError()


async def _find_code_for_order(db: AsyncSession, order_id: str) -> Optional[RedemptionCode]:
    result = await db.execute(
        select(RedemptionCode)
        .filter_by(order_id=order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _link_code(db: AsyncSession, order_id: str, code_id: str) -> None:
    await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.redemption_code_id.is_(None))
        .values(redemption_code_id=code_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def ensure_code(db: AsyncSession, order_id: str) -> Tuple[Optional[RedemptionCode], bool]:
    """Make sure the order has exactly one redemption code.

    Looks at ``Order.redemption_code_id``, then at an existing row for the
    order, and only then generates a new one. Returns ``(code, created)``;
    ``code`` is ``None`` when the order does not exist.
    """
    result = await db.execute(
        select(Order).filter_by(id=order_id).execution_options(populate_existing=True)
    )
    order = result.scalars().first()
    if order is None:
        return None, False

    if order.redemption_code_id:
        linked = await db.get(RedemptionCode, order.redemption_code_id)
        if linked is not None:
            return linked, False

    existing = await _find_code_for_order(db, order_id)
    if existing is not None:
        await _link_code(db, order_id, existing.id)
        return existing, False

    shop_id = order.shop_id
    for _ in range(MAX_GENERATION_ATTEMPTS):
        code = RedemptionCode(
            order_id=order_id,
            shop_id=shop_id,
            code=await generate_unique_code(db),
            status=CodeStatus.ACTIVE,
        )
        db.add(code)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            # либо код уже создал параллельный обработчик, либо совпал сам код
            existing = await _find_code_for_order(db, order_id)
            if existing is not None:
                await _link_code(db, order_id, existing.id)
                return existing, False
            continue

        await _link_code(db, order_id, code.id)
        logging.info("Redemption code issued for order %s", order_id)
        return code, True

    raise GenerationError()


async def _get_active_code(db: AsyncSession, code: str) -> RedemptionCode:
    result = await db.execute(
        select(RedemptionCode)
        .options(
            selectinload(RedemptionCode.order).selectinload(Order.items),
            selectinload(RedemptionCode.order).selectinload(Order.customer),
            selectinload(RedemptionCode.shop),
        )
        .filter_by(code=normalize_code(code), status=CodeStatus.ACTIVE)
        .execution_options(populate_existing=True)
    )
    record = result.scalars().first()
    if record is None:
        raise CodeNotFound()
    return record


def _order_payload(order: Order) -> Dict[str, Any]:
    customer = order.customer
    return {
        "id": order.id,
        "order_number": order.order_number,
        "total": float(order.total),
        "status": order.status,
        "payment_status": order.payment_status,
        "redemption_confirmed": order.redemption_confirmed,
        "customer": {"name": customer.name, "phone": customer.phone} if customer else None,
        "items": [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": float(item.unit_price),
                "total_price": float(item.total_price),
            }
            for item in order.items
        ],
    }


async def view_code(db: AsyncSession, code: str) -> Dict[str, Any]:
    """Side-effect-free lookup of an active code."""
    record = await _get_active_code(db, code)
    shop = record.shop
    return {
        "code": record.code,
        "order": _order_payload(record.order) if record.order else None,
        "shop": {"id": shop.id, "name": shop.name, "owner_id": shop.owner_id} if shop else None,
    }


async def _redeem(db: AsyncSession, code_id: str, user_id: Optional[str]) -> bool:
    result = await db.execute(
        update(RedemptionCode)
        .where(RedemptionCode.id == code_id, RedemptionCode.status == CodeStatus.ACTIVE)
        .values(status=CodeStatus.REDEEMED, redeemed_by=user_id, redeemed_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _complete_order(db: AsyncSession, order_id: str) -> bool:
    result = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.payment_status == OrderPaymentStatus.PAID,
            Order.redemption_confirmed.is_(False),
        )
        .values(status=OrderStatus.COMPLETED, redemption_confirmed=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def confirm_delivery(db: AsyncSession, code: str, user_id: str) -> None:
    """Seller confirms handing over the order. Does not touch the wallet."""
    record = await _get_active_code(db, code)
    shop = record.shop
    if shop is None or shop.owner_id != user_id:
        raise Unauthorized("Unauthorized to confirm delivery for this order")
    if record.order is None:
        raise OrderNotFound("Order not found for this code")

    order_id = record.order.id
    if not await _redeem(db, record.id, user_id):
        await db.rollback()
        raise CodeNotFound()
    if not await _complete_order(db, order_id):
        await db.rollback()
        raise OrderNotFound("Order not found or already confirmed")
    await db.commit()
    logging.info("Delivery confirmed for order %s by %s", order_id, user_id)


async def confirm_receipt(db: AsyncSession, order_id: str = None, code: str = None,
                          user_id: str = None, check_customer: bool = False) -> bool:
    """Buyer confirms receipt, by code or by order id.

    Only a paid, not yet confirmed order qualifies. Completing the order also
    redeems its code and runs the idempotent seller credit. Returns whether
    this call performed the credit.
    """
    if code:
        record = await _get_active_code(db, code)
        order_id = record.order_id

    result = await db.execute(
        select(Order)
        .options(selectinload(Order.customer))
        .filter_by(
            id=order_id,
            payment_status=OrderPaymentStatus.PAID,
            redemption_confirmed=False,
        )
        .execution_options(populate_existing=True)
    )
    order = result.scalars().first()
    if order is None:
        raise OrderNotFound("Order not found or already confirmed")

    if check_customer and order.customer is not None and order.customer.user_id:
        if order.customer.user_id != user_id:
            raise Unauthorized("This order belongs to another customer")

    if not await _complete_order(db, order_id):
        await db.rollback()
        raise OrderNotFound("Order not found or already confirmed")

    existing = await _find_code_for_order(db, order_id)
    if existing is not None:
        await _redeem(db, existing.id, user_id)
    await db.commit()
    logging.info("Receipt confirmed for order %s", order_id)

    payment = await wallet_service.find_successful_payment(db, order_id)
    if payment is None:
        logging.warning("No successful payment to credit for order %s", order_id)
        return False
    return await wallet_service.credit_seller_once(db, payment.id)
