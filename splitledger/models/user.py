from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func, true
from splitledger.core.config import settings
from splitledger.db.session import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)
    preferred_language = Column(String, nullable=False, default=settings.DEFAULT_LANGUAGE)
    is_active = Column(Boolean, nullable=False, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
