from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from washop.db.base_class import Base, new_id


class CodeStatus:
    ACTIVE = "active"
    REDEEMED = "redeemed"


class RedemptionCode(Base):
    __tablename__ = "redemption_codes"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    shop_id = Column(String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(8), unique=True, index=True, nullable=False)
    status = Column(String(16), default=CodeStatus.ACTIVE, nullable=False)
    redeemed_by = Column(String(36), nullable=True)
    redeemed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("Order")
    shop = relationship("Shop")
