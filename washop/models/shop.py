from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from washop.db.base_class import Base, new_id


class Shop(Base):
    __tablename__ = "shops"

    id = Column(String(36), primary_key=True, default=new_id)
    # id пользователя из провайдера авторизации
    owner_id = Column(String(36), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    whatsapp_number = Column(String(32), nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    wallet = relationship("SellerWallet", back_populates="shop", uselist=False)
    subscription = relationship("Subscription", back_populates="shop", uselist=False)


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    role = Column(String(16), nullable=False)  # admin | seller

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)
