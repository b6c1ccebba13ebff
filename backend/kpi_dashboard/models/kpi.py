"""KPI catalog, assignment and daily entry models."""

from __future__ import annotations

import enum
from datetime import date, datetime
from uuid import uuid4

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kpi_dashboard.db.base import Base


def _uuid_pk() -> str:
    return str(uuid4())


class AggregationKind(str, enum.Enum):
    """How a metric rolls up over a period.

    FLOW metrics are additive counts (calls made) and are summed. STOCK
    metrics are point-in-time quantities (open requisitions) and are averaged.
    """

    FLOW = "flow"
    STOCK = "stock"


class KPIDefinition(Base):
    __tablename__ = "kpis"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    name: Mapped[str] = mapped_column(String(128), unique=True)
    sector: Mapped[str] = mapped_column(String(64))
    aggregation: Mapped[AggregationKind] = mapped_column(
        Enum(AggregationKind, name="kpi_aggregation", values_callable=lambda e: [m.value for m in e]),
        default=AggregationKind.FLOW,
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0)


class UserKPI(Base):
    __tablename__ = "user_kpis"
    __table_args__ = (UniqueConstraint("user_id", "kpi_id", name="uq_user_kpi"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    kpi_id: Mapped[str] = mapped_column(ForeignKey("kpis.id", ondelete="CASCADE"))


class KPIEntry(Base):
    __tablename__ = "kpi_entries"
    # At most one row per (user_id, kpi_id, date); maintained by the entry editor, not the schema.
    __table_args__ = (Index("ix_kpi_entries_user_date", "user_id", "date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_pk)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    kpi_id: Mapped[str] = mapped_column(ForeignKey("kpis.id", ondelete="CASCADE"))
    date: Mapped[date] = mapped_column(Date, index=True)
    sector: Mapped[str | None] = mapped_column(String(64), nullable=True)
    value: Mapped[float] = mapped_column(Numeric(14, 4))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


__all__ = ["AggregationKind", "KPIDefinition", "UserKPI", "KPIEntry"]
