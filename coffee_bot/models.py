from sqlalchemy import Column, DateTime, Integer, JSON, String, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BotStateEntry(Base):
    """
    Persists conversation state (pending quantities, undo pointers) so it can
    outlive a single worker process when a durable store is configured.
    """
    __tablename__ = "bot_state"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, nullable=False, index=True)  # e.g. "undo:123:456"
    value = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
