from datetime import datetime
from sqlalchemy import Column, String, DateTime, Numeric, Text, ForeignKey, UniqueConstraint
from washop.db.base_class import Base, new_id


class ProofStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentProof(Base):
    __tablename__ = "payment_proofs"

    id = Column(String(36), primary_key=True, default=new_id)
    payment_type = Column(String(16), nullable=False)  # subscription | order
    # id заказа или подписки
    reference_id = Column(String(36), nullable=False, index=True)
    shop_id = Column(String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    proof_image_url = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String(32), nullable=True)
    status = Column(String(16), default=ProofStatus.PENDING, nullable=False, index=True)
    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(String(36), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    # reference провайдера для автоматически одобренных подписок
    transaction_reference = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("transaction_reference", name="uq_payment_proofs_transaction_reference"),
    )
