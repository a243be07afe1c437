# backoffice/db/base.py
from __future__ import annotations

import importlib
import logging
from typing import Iterable, List, Set

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("backoffice.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化

# 字符串关系目标必须先注册，顺序即依赖顺序
MODEL_MODULES = [
    "backoffice.models.reference",
    "backoffice.models.inventory",
    "backoffice.models.document_sequence",
    "backoffice.models.stock_adjustment",
    "backoffice.models.stock_transfer",
    "backoffice.models.purchase_order",
    "backoffice.models.purchase_receipt",
    "backoffice.models.purchase_return",
    "backoffice.models.stock_count",
    "backoffice.models.audit_event",
]


def init_models(*, extra_modules: Iterable[str] | None = None, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射：
      1) 按 MODEL_MODULES 顺序导入
      2) 追加 extra_modules
      3) 最后统一 configure_mappers()
    导入失败直接抛出，不做静默跳过。
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    loaded: List[str] = []
    seen: Set[str] = set()
    for mod in [*MODEL_MODULES, *(extra_modules or [])]:
        if mod in seen:
            continue
        importlib.import_module(mod)
        seen.add(mod)
        loaded.append(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(loaded))
