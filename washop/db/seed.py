"""Populate the database with a demo shop, customer and paid-pending order."""

import asyncio
from decimal import Decimal

from sqlalchemy import delete

from washop.db.session import DATABASE_URL, SessionLocal
from washop.models.order import Customer, Order, OrderItem
from washop.models.payment import Payment
from washop.models.redemption_code import RedemptionCode
from washop.models.shop import Shop, UserRole
from washop.models.wallet import SellerWallet

print(f"🗂 Используется база данных: {DATABASE_URL}")

DEMO_OWNER_ID = "00000000-0000-0000-0000-000000000001"
DEMO_ADMIN_ID = "00000000-0000-0000-0000-000000000002"


async def main() -> None:
    async with SessionLocal() as session:
        print("🧹 Очищаю таблицы...")
        for model in (RedemptionCode, Payment, OrderItem, Order, Customer, SellerWallet, UserRole, Shop):
            await session.execute(delete(model))

        print("➕ Добавляю магазин и администратора...")
        shop = Shop(owner_id=DEMO_OWNER_ID, name="Demo Shop", whatsapp_number="+2348000000000", is_active=True)
        session.add_all([shop, UserRole(user_id=DEMO_ADMIN_ID, role="admin")])
        await session.commit()

        print("🛒 Создаю заказ...")
        customer = Customer(shop_id=shop.id, name="Ada Buyer", phone="+2348011111111", email="ada@example.com")
        session.add(customer)
        await session.commit()

        order = Order(
            shop_id=shop.id,
            customer_id=customer.id,
            order_number="WS-0001",
            subtotal=Decimal("10000.00"),
            total=Decimal("10000.00"),
        )
        order.items.append(
            OrderItem(product_name="Ankara fabric", quantity=2, unit_price=Decimal("5000.00"),
                      total_price=Decimal("10000.00"))
        )
        session.add(order)
        await session.commit()

        print(f"✅ База данных успешно заполнена. Заказ: {order.id}")


if __name__ == "__main__":
    asyncio.run(main())
