# backoffice/models/document_sequence.py
from __future__ import annotations

from datetime import date

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.db.base import Base


class DocumentSequence(Base):
    """单号计数器：每 (document_type, seq_date) 一行，current_value 为已发出的最大序号。"""

    __tablename__ = "document_sequences"

    document_type: Mapped[str] = mapped_column(sa.String(8), primary_key=True)
    seq_date: Mapped[date] = mapped_column(sa.Date, primary_key=True)
    current_value: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
