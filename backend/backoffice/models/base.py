"""
Base declarativa e tipos de coluna compartilhados
"""

from sqlalchemy import Enum as SAEnum, Numeric
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Dinheiro sempre com duas casas
Dinheiro = Numeric(18, 2, asdecimal=True)


def enum_coluna(enum_cls):
    """Enum persistido como VARCHAR com o valor (não o nome) do membro"""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=25,
        values_callable=lambda e: [m.value for m in e],
    )
