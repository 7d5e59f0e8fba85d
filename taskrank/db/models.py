"""SQLAlchemy ORM models for taskrank state."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TaskRecordDB(Base):
    __tablename__ = "task_records"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    player_id: Mapped[str] = mapped_column(String, index=True)
    competition_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    title: Mapped[str] = mapped_column(String, default="")
    # Stored as text so malformed upstream timestamps survive a round trip
    due_date: Mapped[str | None] = mapped_column(String, nullable=True)
    completed_date: Mapped[str | None] = mapped_column(String, nullable=True)
    in_rework: Mapped[bool] = mapped_column(Boolean, default=False)
    classification: Mapped[str] = mapped_column(String)
    percent: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class IncorrectSubmissionDB(Base):
    __tablename__ = "incorrect_submissions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    entry_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    player_id: Mapped[str] = mapped_column(String, index=True)
    task_id: Mapped[str | None] = mapped_column(String, nullable=True)
    competition_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ProductivityPercentageDB(Base):
    __tablename__ = "productivity_percentages"

    classification: Mapped[str] = mapped_column(String, primary_key=True)
    percent: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class LevelRuleDB(Base):
    __tablename__ = "level_rules"
    __table_args__ = (UniqueConstraint("xp_required", name="uq_level_xp_required"),)

    level: Mapped[int] = mapped_column(Integer, primary_key=True)
    xp_required: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String, default="")
