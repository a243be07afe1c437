# backoffice/models/audit_event.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db.base import Base


class AuditEvent(Base):
    """领域事件审计落表（提交后写入，失败不影响业务事务）"""

    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(sa.String(32), nullable=False, index=True)
    ref: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column(sa.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
