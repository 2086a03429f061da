"""
Modelos SQLAlchemy do fechamento do dia (cabeçalho + itens)
"""

from datetime import datetime

from sqlalchemy import Column, Integer, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship

from backoffice.core.enums import StatusLancamento
from backoffice.models.base import Base, enum_coluna


class FechamentoDia(Base):
    """Cabeçalho do fechamento. No máximo um por data."""
    
    __tablename__ = "fechamento_dia"
    
    data_ref = Column(Date, primary_key=True)
    criado_por = Column(Integer, nullable=True)
    criado_em = Column(DateTime, default=datetime.utcnow, nullable=False)
    observacao = Column(Text, nullable=True)
    
    itens = relationship(
        "FechamentoItem",
        back_populates="fechamento",
        order_by="FechamentoItem.lancamento_id",
    )


class FechamentoItem(Base):
    """Foto do status de um lançamento no dia do fechamento"""
    
    __tablename__ = "fechamento_itens"
    
    data_ref = Column(
        Date, ForeignKey("fechamento_dia.data_ref", ondelete="RESTRICT"), primary_key=True
    )
    lancamento_id = Column(
        Integer, ForeignKey("bloco_lancamentos.id", ondelete="RESTRICT"), primary_key=True
    )
    status_no_dia = Column(enum_coluna(StatusLancamento), nullable=False)
    
    fechamento = relationship("FechamentoDia", back_populates="itens")
    lancamento = relationship("BlocoLancamento")
