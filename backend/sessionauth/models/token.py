"""Refresh token persistence model."""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from sessionauth.core.database import Base


class RefreshToken(Base):
    """One live refresh token per (user, user agent)."""

    __tablename__ = "refresh_tokens"

    token = Column(String(128), primary_key=True)
    exp = Column(DateTime(timezone=True), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_agent = Column(String(512), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        UniqueConstraint("user_id", "user_agent", name="uq_refresh_tokens_user_agent"),
    )

    def __repr__(self):
        return f"<RefreshToken(user_id={self.user_id}, user_agent='{self.user_agent}', exp={self.exp})>"
