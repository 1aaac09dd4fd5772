import asyncio
import sys
from decimal import Decimal
from pathlib import Path

import jwt
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from washop.db.base import Base
from washop.models.order import Customer, Order, OrderItem, OrderPaymentStatus, OrderStatus
from washop.models.payment import Payment, PaymentState
from washop.models.shop import Shop, UserRole
from washop.services import wallet_service

JWT_SECRET = "test-jwt-secret"
OWNER_ID = "owner-1"
BUYER_ID = "buyer-1"
ADMIN_ID = "admin-1"


def setup_test_db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)

    async def init_models():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return TestingSessionLocal


def seed_order(SessionLocal, total="10000", paid=False, customer_user_id=BUYER_ID,
               with_payment=True, reference="WASHOP_TEST_REF"):
    """Shop + customer + order (+ pending payment). Returns the created ids."""

    async def seed():
        async with SessionLocal() as db:
            shop = Shop(owner_id=OWNER_ID, name="Mama Put Store")
            db.add(shop)
            await db.flush()

            customer = Customer(shop_id=shop.id, user_id=customer_user_id, name="Ada", phone="+2348011111111")
            db.add(customer)
            await db.flush()

            amount = Decimal(total)
            order = Order(
                shop_id=shop.id,
                customer_id=customer.id,
                order_number="WS-0001",
                subtotal=amount,
                total=amount,
                status=OrderStatus.PROCESSING if paid else OrderStatus.PENDING,
                payment_status=OrderPaymentStatus.PAID if paid else OrderPaymentStatus.PENDING,
            )
            order.items.append(
                OrderItem(product_name="Jollof rice", quantity=1, unit_price=amount, total_price=amount)
            )
            db.add(order)
            await db.flush()

            payment_id = None
            if with_payment:
                fee, seller_amount = wallet_service.split_amount(amount)
                payment = Payment(
                    order_id=order.id,
                    shop_id=shop.id,
                    provider="paystack",
                    provider_reference=reference,
                    amount=amount,
                    platform_fee=fee,
                    seller_amount=seller_amount,
                    status=PaymentState.SUCCESS if paid else PaymentState.PENDING,
                )
                db.add(payment)
                await db.flush()
                payment_id = payment.id

            await db.commit()
            return {
                "shop_id": shop.id,
                "customer_id": customer.id,
                "order_id": order.id,
                "payment_id": payment_id,
                "reference": reference,
            }

    return asyncio.run(seed())


def seed_admin(SessionLocal, user_id=ADMIN_ID):
    async def seed():
        async with SessionLocal() as db:
            db.add(UserRole(user_id=user_id, role="admin"))
            await db.commit()

    asyncio.run(seed())


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id, "aud": "authenticated"}, JWT_SECRET, algorithm="HS256")


def auth_header(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def run(SessionLocal, func, *args, **kwargs):
    """Run ``func(db, *args, **kwargs)`` in a fresh session."""

    async def go():
        async with SessionLocal() as db:
            return await func(db, *args, **kwargs)

    return asyncio.run(go())


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    # никаких реальных уведомлений и ключей из окружения разработчика
    for name in (
        "TWILIO_ACCOUNT_SID",
        "TWILIO_AUTH_TOKEN",
        "TWILIO_WHATSAPP_NUMBER",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_ADMIN_CHAT_ID",
        "PAYSTACK_SECRET_KEY",
        "FLUTTERWAVE_SECRET_KEY",
        "FLUTTERWAVE_WEBHOOK_HASH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AUTH_JWT_SECRET", JWT_SECRET)


@pytest.fixture
def session_factory():
    return setup_test_db()
