# backoffice/services/sequence_service.py
"""
单号生成：{前缀}{yyyymmdd}{序号}，例如 ADJ202401150001。

计数器为 document_sequences 上的一次 upsert 自增（INSERT ... ON CONFLICT DO UPDATE
... RETURNING），在调用方事务内执行；并发下由数据库保证不重号，回滚则序号一并作废。
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.config import get_settings
from backoffice.db.dialect import upsert_insert
from backoffice.models.document_sequence import DocumentSequence
from backoffice.models.enums import DocumentType
from backoffice.services.errors import DuplicateDocumentNumber

logger = logging.getLogger("backoffice.sequence")


def format_number(document_type: DocumentType, on: date, seq: int, width: Optional[int] = None) -> str:
    w = int(width or get_settings().SEQUENCE_WIDTH)
    return f"{DocumentType(document_type).value}{on:%Y%m%d}{int(seq):0{w}d}"


async def generate_number(
    session: AsyncSession,
    document_type: DocumentType,
    on: Optional[date] = None,
) -> str:
    dt = DocumentType(document_type)
    day = on or date.today()

    stmt = (
        upsert_insert(session, DocumentSequence)
        .values(document_type=dt.value, seq_date=day, current_value=1)
        .on_conflict_do_update(
            index_elements=[DocumentSequence.document_type, DocumentSequence.seq_date],
            set_={"current_value": DocumentSequence.current_value + 1},
        )
        .returning(DocumentSequence.current_value)
    )
    seq = int((await session.execute(stmt)).scalar_one())
    number = format_number(dt, day, seq)
    logger.debug("issued %s", number)
    return number


def _is_unique_violation(err: IntegrityError) -> bool:
    msg = str(getattr(err, "orig", err)).lower()
    return "unique" in msg or "duplicate key" in msg


async def flush_document(session: AsyncSession, document_type: DocumentType, number: str) -> None:
    """flush 新单据；单号唯一约束冲突 → DuplicateDocumentNumber。"""
    try:
        await session.flush()
    except IntegrityError as e:
        if _is_unique_violation(e):
            logger.warning("duplicate document number %s", number)
            raise DuplicateDocumentNumber(document_type=DocumentType(document_type).value, number=number) from e
        raise
