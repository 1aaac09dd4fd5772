"""Subscription activation for shops (provider payments and approved bank transfers)."""

import calendar
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from washop import config
from washop.models.shop import Shop
from washop.models.subscription import Subscription


def add_one_month(moment: datetime) -> datetime:
    """Same day next month, clamped to the last day (31 Jan -> 28/29 Feb)."""
    year = moment.year + (1 if moment.month == 12 else 0)
    month = 1 if moment.month == 12 else moment.month + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


async def activate_subscription(db: AsyncSession, shop_id: str, plan: Optional[str] = None,
                                billing_record: Optional[Callable[[Subscription], Any]] = None,
                                _retry: bool = True) -> Subscription:
    """Activate or renew the shop's subscription for one month starting now.

    Renewal does not accumulate: the period always restarts from now.
    ``billing_record(subscription)`` builds a row committed together with the
    activation.
    """
    now = datetime.utcnow()
    period_end = add_one_month(now)

    result = await db.execute(
        select(Subscription).filter_by(shop_id=shop_id).execution_options(populate_existing=True)
    )
    subscription = result.scalars().first()
    if subscription:
        subscription.status = "active"
        subscription.plan = plan or subscription.plan
        subscription.current_period_start = now
        subscription.current_period_end = period_end
    else:
        subscription = Subscription(
            shop_id=shop_id,
            plan=plan or config.DEFAULT_PLAN,
            status="active",
            current_period_start=now,
            current_period_end=period_end,
        )
        db.add(subscription)

    try:
        await db.flush()
        if billing_record is not None:
            db.add(billing_record(subscription))
        # Магазин становится видимым покупателям
        await db.execute(
            update(Shop)
            .where(Shop.id == shop_id)
            .values(is_active=True)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except IntegrityError:
        # подписку создал параллельный запрос
        await db.rollback()
        if not _retry:
            raise
        return await activate_subscription(db, shop_id, plan, billing_record, _retry=False)
    await db.refresh(subscription)
    return subscription
