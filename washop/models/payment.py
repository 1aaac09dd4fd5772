# washop/models/payment.py
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, ForeignKey, UniqueConstraint, Index
from washop.db.base_class import Base, new_id


class PaymentState:
    PENDING = "pending"
    SUCCESS = "success"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    shop_id = Column(String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)

    # paystack | flutterwave | bank_transfer
    provider = Column(String(32), nullable=False)
    # Наш reference, уникален для каждой попытки оплаты
    provider_reference = Column(String(128), nullable=False)
    # id транзакции на стороне провайдера (приходит при verify/webhook)
    provider_transaction_id = Column(String(64), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    platform_fee = Column(Numeric(12, 2), nullable=False)
    seller_amount = Column(Numeric(12, 2), nullable=False)

    status = Column(String(16), default=PaymentState.PENDING, nullable=False)
    # Защёлка: после True деньги продавцу повторно не начисляются
    credited_to_seller = Column(Boolean, default=False, nullable=False)
    credited_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("provider_reference", name="uq_payments_provider_reference"),
        Index("ix_payments_order_status", "order_id", "status"),
    )
