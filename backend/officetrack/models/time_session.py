import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from officetrack.core.database import Base


class TimeSession(Base):
    __tablename__ = "time_sessions"
    __table_args__ = (
        # at most one active session per user
        Index(
            "uq_time_sessions_active_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        # one session per user per calendar day
        Index("uq_time_sessions_user_date", "user_id", "date", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    clock_in: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    clock_out: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    total_work_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", index=True
    )  # active, completed
    device_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="web"
    )  # web, mobile, kiosk, manual
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_overtime: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    late_clock_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    early_clock_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    breaks = relationship(
        "SessionBreak",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SessionBreak.break_start",
    )


class SessionBreak(Base):
    __tablename__ = "session_breaks"
    __table_args__ = (
        # at most one open break per session
        Index(
            "uq_session_breaks_open",
            "session_id",
            unique=True,
            postgresql_where=text("break_end IS NULL"),
            sqlite_where=text("break_end IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("time_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    break_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    break_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reason: Mapped[str] = mapped_column(
        String(255), nullable=False, default="Unspecified"
    )

    # Relationships
    session = relationship("TimeSession", back_populates="breaks")
