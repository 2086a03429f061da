"""
Modelo SQLAlchemy de lançamento de bloco
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from backoffice.core.enums import Sentido, StatusLancamento, TipoCheque
from backoffice.models.base import Base, Dinheiro, enum_coluna


class BlocoLancamento(Base):
    """Movimentação de dinheiro dentro de um bloco"""
    
    __tablename__ = "bloco_lancamentos"
    
    id = Column(Integer, primary_key=True, index=True)
    bloco_id = Column(Integer, ForeignKey("blocos.id"), nullable=False, index=True)
    
    tipo_recebimento = Column(String(30), nullable=False, index=True)  # CHEQUE, PIX, PEDIDO...
    sentido = Column(enum_coluna(Sentido), nullable=False)
    valor = Column(Dinheiro, nullable=False)
    
    data_lancamento = Column(DateTime, nullable=False, index=True)
    bom_para = Column(DateTime, nullable=True)  # Vencimento / data do cheque
    tipo_cheque = Column(enum_coluna(TipoCheque), nullable=True)
    numero_referencia = Column(String(100), nullable=True)
    
    status = Column(
        enum_coluna(StatusLancamento), default=StatusLancamento.PENDENTE, nullable=False
    )
    observacao = Column(Text, nullable=True)
    
    # Origem do lançamento quando gerado automaticamente
    referencia_pedido_id = Column(Integer, nullable=True)
    referencia_lancamento_id = Column(Integer, ForeignKey("bloco_lancamentos.id"), nullable=True)
    
    criado_por = Column(Integer, nullable=True)
    criado_em = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    bloco = relationship("Bloco", back_populates="lancamentos")
