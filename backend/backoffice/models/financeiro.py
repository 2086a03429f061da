"""
Modelos SQLAlchemy de títulos a receber e suas baixas
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship

from backoffice.core.enums import StatusTitulo
from backoffice.models.base import Base, Dinheiro, enum_coluna


class FinanceiroTitulo(Base):
    """Título a receber (cheque, boleto...) com baixa parcial"""
    
    __tablename__ = "financeiro_titulos"
    
    id = Column(Integer, primary_key=True, index=True)
    cliente_id = Column(Integer, ForeignKey("clientes.id"), nullable=False, index=True)
    tipo = Column(String(30), nullable=False)
    numero_doc = Column(String(100), nullable=True)
    banco = Column(String(50), nullable=True)
    agencia = Column(String(20), nullable=True)
    conta = Column(String(30), nullable=True)
    bom_para = Column(Date, nullable=False, index=True)
    valor_bruto = Column(Dinheiro, nullable=False)
    valor_baixado = Column(Dinheiro, nullable=False, default=0)
    status = Column(enum_coluna(StatusTitulo), default=StatusTitulo.ABERTO, nullable=False)
    observacao = Column(Text, nullable=True)
    
    # Origem no razão (opcionais)
    bloco_id = Column(Integer, ForeignKey("blocos.id"), nullable=True)
    lancamento_id = Column(Integer, ForeignKey("bloco_lancamentos.id"), nullable=True)
    
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    
    baixas = relationship(
        "FinanceiroBaixa",
        back_populates="titulo",
        order_by="FinanceiroBaixa.id",
    )


class FinanceiroBaixa(Base):
    """Pagamento (total ou parcial) registrado contra um título"""
    
    __tablename__ = "financeiro_baixas"
    
    id = Column(Integer, primary_key=True, index=True)
    titulo_id = Column(Integer, ForeignKey("financeiro_titulos.id"), nullable=False, index=True)
    data_baixa = Column(DateTime, default=datetime.utcnow, nullable=False)
    valor_baixa = Column(Dinheiro, nullable=False)
    forma_pagto = Column(String(30), nullable=True)
    obs = Column(Text, nullable=True)
    user_id = Column(Integer, nullable=True)
    
    titulo = relationship("FinanceiroTitulo", back_populates="baixas")
