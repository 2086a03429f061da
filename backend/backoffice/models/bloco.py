"""
Modelos SQLAlchemy para blocos e vínculos de pedidos
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Index, text
)
from sqlalchemy.orm import relationship

from backoffice.core.enums import StatusBloco
from backoffice.models.base import Base, enum_coluna


class Bloco(Base):
    """Conta corrente de um cliente, aberta até ser zerada e fechada"""
    
    __tablename__ = "blocos"
    
    id = Column(Integer, primary_key=True, index=True)
    cliente_id = Column(Integer, ForeignKey("clientes.id"), nullable=False, index=True)
    codigo = Column(String(50), nullable=False)
    status = Column(enum_coluna(StatusBloco), default=StatusBloco.ABERTO, nullable=False)
    aberto_em = Column(DateTime, default=datetime.utcnow, nullable=False)
    fechado_em = Column(DateTime, nullable=True)
    observacao = Column(Text, nullable=True)
    
    # Um único bloco ABERTO por (cliente, código)
    __table_args__ = (
        Index(
            "ux_blocos_cliente_codigo_aberto",
            "cliente_id",
            "codigo",
            unique=True,
            sqlite_where=text("status = 'ABERTO'"),
            postgresql_where=text("status = 'ABERTO'"),
        ),
    )
    
    cliente = relationship("Cliente")
    lancamentos = relationship("BlocoLancamento", back_populates="bloco")
    pedidos = relationship("BlocoPedido", back_populates="bloco")


class BlocoPedido(Base):
    """Vínculo pedido -> bloco. Um pedido pertence a no máximo um bloco."""
    
    __tablename__ = "bloco_pedidos"
    
    id = Column(Integer, primary_key=True, index=True)
    bloco_id = Column(Integer, ForeignKey("blocos.id"), nullable=False, index=True)
    pedido_id = Column(Integer, nullable=False, unique=True)
    criado_por = Column(Integer, nullable=True)
    criado_em = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    bloco = relationship("Bloco", back_populates="pedidos")
