from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# 订阅价格 / 商品价格统一精度
Money = Numeric(12, 2)

__all__ = [
    "Base",
    "Boolean",
    "Column",
    "DateTime",
    "ForeignKey",
    "Integer",
    "Money",
    "String",
    "Text",
    "UniqueConstraint",
]
