"""
Modelo de cliente (somente leitura para o razão)
"""

from sqlalchemy import Column, Integer, String, Boolean

from backoffice.models.base import Base


class Cliente(Base):
    """Cadastro de clientes mantido fora do razão"""
    
    __tablename__ = "clientes"
    
    id = Column(Integer, primary_key=True, index=True)
    nome_fantasia = Column(String(255), nullable=False)
    ativo = Column(Boolean, default=True, nullable=False)
