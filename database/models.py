"""SQLAlchemy models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=True)
    address = Column(String, nullable=False, index=True)
    private_key = Column(Text, nullable=False)  # encrypted, see wallet.key_vault
    is_active = Column(Boolean, default=False, nullable=False)
    type = Column(String, default="buy", nullable=False)  # buy/sell
    status = Column(String, default="pending", nullable=False)  # pending/placing/failed
    amount_in = Column(Float, default=0.0, nullable=False)
    unit = Column(String, default="value", nullable=False)  # value/percent
    token_address = Column(String, nullable=True)
    bnb_balance = Column(Float, default=0.0, nullable=False)
    token_balance = Column(Float, default=0.0, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    cycle = Column(Integer, default=0, nullable=False)  # 0 = unlimited
    current_cycle = Column(Integer, default=0, nullable=False)
    wait_from = Column(Integer, nullable=True)
    wait_to = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def short_address(self) -> str:
        addr = str(self.address or "")
        if len(addr) <= 12:
            return addr
        return f"{addr[:6]}...{addr[-4:]}"


class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
