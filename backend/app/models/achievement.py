"""Achievement and attachment models"""

from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class Achievement(Base):
    """Student achievement moving through the verification workflow"""

    __tablename__ = "achievements"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    achievement_date = Column(Date, nullable=False)
    status = Column(String(20), default="draft", nullable=False)
    verified_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    owner = relationship("User", back_populates="achievements", foreign_keys=[owner_id])
    verifier = relationship("User", foreign_keys=[verified_by])
    files = relationship("AchievementFile", back_populates="achievement", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_achievements_owner', 'owner_id'),
        Index('idx_achievements_status', 'status'),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'verified', 'rejected')",
            name='chk_achievement_status'
        ),
    )

    def __repr__(self):
        return f"<Achievement(id={self.id}, owner_id={self.owner_id}, status='{self.status}')>"


class AchievementFile(Base):
    """Evidence file attached to an achievement; bytes live in the blob store"""

    __tablename__ = "achievement_files"

    id = Column(Integer, primary_key=True, index=True)
    achievement_id = Column(Integer, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(128), nullable=False)
    size = Column(Integer, nullable=False)
    storage_key = Column(String(64), unique=True, nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    achievement = relationship("Achievement", back_populates="files")

    __table_args__ = (
        Index('idx_achievement_files_achievement', 'achievement_id'),
        CheckConstraint('size >= 0', name='chk_file_size'),
    )
