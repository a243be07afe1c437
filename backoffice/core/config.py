# backoffice/core/config.py
from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    全局应用配置（环境变量 / .env）

    - 生产：postgresql+psycopg
    - 本地 / 测试：sqlite+aiosqlite
    """

    # 运行环境
    ENV: str = Field(default="dev")
    DEBUG: bool = Field(default=False)

    # 数据库
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./backoffice.db",
        description="连接串，例如：postgresql+psycopg://bo:bo@127.0.0.1:5432/backoffice",
    )
    SQL_ECHO: bool = Field(default=False)

    # 日志
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOG: bool = Field(default=False)

    # 台账：乐观锁版本冲突时的最大重试次数
    LEDGER_MAX_RETRIES: int = Field(default=3, ge=1)

    # 单号：流水号位数（ADJ20240101 + 0001）
    SEQUENCE_WIDTH: int = Field(default=4, ge=1, le=9)

    # 采购
    PURCHASE_TAX_RATE: Decimal = Field(default=Decimal("0.05"), ge=0)
    PO_DEFAULT_LEAD_DAYS: int = Field(default=7, ge=0)

    # 补货建议：库存 / 安全库存 的紧急度阈值
    REPLENISH_CRITICAL_RATIO: float = Field(default=0.3, ge=0)
    REPLENISH_WARNING_RATIO: float = Field(default=0.7, ge=0)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> AppSettings:
    """全局单例设置入口。"""
    return AppSettings()
