from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from washop.db.base_class import Base, new_id


class SellerWallet(Base):
    __tablename__ = "seller_wallets"

    id = Column(String(36), primary_key=True, default=new_id)
    shop_id = Column(
        String(36), ForeignKey("shops.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    balance = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_earned = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_withdrawn = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    shop = relationship("Shop", back_populates="wallet")
