import uuid
from datetime import datetime
from enum import Enum
from typing import Type
from sqlalchemy import Column, Enum as SAEnum
from sqlmodel import SQLModel


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.utcnow()


def enum_column(enum_cls: Type[Enum], nullable: bool = False, **kwargs) -> Column:
    """Column storing an Enum by its value (e.g. 'completed'), not its name."""
    return Column(
        SAEnum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=20,
        ),
        nullable=nullable,
        **kwargs,
    )


class BaseModel(SQLModel):
    """Common base for all persisted entities."""
