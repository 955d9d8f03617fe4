"""
SQLAlchemy models for saved games.
"""

from datetime import datetime
from sqlalchemy import BigInteger, Column, String, DateTime, Text

from .database import Base


class GameRecord(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)  # uuid
    setup_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    status = Column(String(32), nullable=False, default="active")  # active | finished | abandoned
    seed = Column(BigInteger, nullable=False)
    game_state = Column(Text, nullable=False)  # JSON string of full game state
    actions = Column(Text, nullable=False, default="[]")  # JSON array of applied actions
