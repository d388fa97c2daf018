import uuid

from sqlalchemy import ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from officetrack.core.database import Base


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "year", "leave_type_id", name="uq_leave_balances_user_year_type"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("leave_types.id"), nullable=False, index=True
    )
    total_allocated: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )  # minutes
    used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # minutes

    # Relationships
    leave_type = relationship("LeaveType")

    @property
    def remaining(self) -> int:
        return max(0, (self.total_allocated or 0) - (self.used or 0))
