"""
Modelos SQLAlchemy
"""

from backoffice.models.base import Base
from backoffice.models.cliente import Cliente
from backoffice.models.bloco import Bloco, BlocoPedido
from backoffice.models.lancamento import BlocoLancamento
from backoffice.models.fechamento import FechamentoDia, FechamentoItem
from backoffice.models.financeiro import FinanceiroTitulo, FinanceiroBaixa

__all__ = [
    "Base",
    "Cliente",
    "Bloco",
    "BlocoPedido",
    "BlocoLancamento",
    "FechamentoDia",
    "FechamentoItem",
    "FinanceiroTitulo",
    "FinanceiroBaixa",
]
