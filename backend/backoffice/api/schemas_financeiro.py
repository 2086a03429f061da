"""
Schemas Pydantic para API do financeiro (títulos e baixas)
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel

from backoffice.core.enums import StatusLancamento, StatusTitulo


class TituloCreate(BaseModel):
    cliente_id: int
    tipo: str
    bom_para: date
    valor_bruto: Decimal
    numero_doc: Optional[str] = None
    banco: Optional[str] = None
    agencia: Optional[str] = None
    conta: Optional[str] = None
    bloco_id: Optional[int] = None
    lancamento_id: Optional[int] = None  # Vínculo explícito com o razão
    observacao: Optional[str] = None


class TituloUpdate(BaseModel):
    numero_doc: Optional[str] = None
    banco: Optional[str] = None
    agencia: Optional[str] = None
    conta: Optional[str] = None
    bom_para: Optional[date] = None
    observacao: Optional[str] = None


class TituloSchema(BaseModel):
    """Schema de título para resposta da API"""

    id: int
    cliente_id: int
    tipo: str
    numero_doc: Optional[str] = None
    banco: Optional[str] = None
    agencia: Optional[str] = None
    conta: Optional[str] = None
    bom_para: date
    valor_bruto: float
    valor_baixado: float
    status: StatusTitulo
    observacao: Optional[str] = None
    bloco_id: Optional[int] = None
    lancamento_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaginaTitulos(BaseModel):
    data: List[TituloSchema]
    page: int
    page_size: int
    total: int


class BaixaCreate(BaseModel):
    valor_baixa: Decimal
    data_baixa: Optional[datetime] = None
    forma_pagto: Optional[str] = None
    obs: Optional[str] = None


class BaixaSchema(BaseModel):
    id: int
    titulo_id: int
    data_baixa: datetime
    valor_baixa: float
    forma_pagto: Optional[str] = None
    obs: Optional[str] = None
    user_id: Optional[int] = None

    class Config:
        from_attributes = True


class BaixaResposta(BaseModel):
    """Baixa registrada, título atualizado e lançamento liquidado (se houver)"""

    titulo: TituloSchema
    baixa: BaixaSchema
    lancamento_id: Optional[int] = None
    lancamento_status: Optional[StatusLancamento] = None


class SaldoTitulosSchema(BaseModel):
    cliente_id: int
    saldo: float


class ConferenciaSchema(BaseModel):
    data: date
    total: int
    resumo: Dict[str, float]
    titulos: List[TituloSchema]
