"""
Schemas Pydantic para API de blocos, lançamentos, cheques e fechamentos
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from backoffice.core.enums import (
    Sentido, StatusBloco, StatusLancamento, TipoCheque
)


class BlocoCreate(BaseModel):
    """Schema para abertura de bloco"""

    cliente_id: int
    codigo: Optional[str] = None  # Gerado quando ausente
    observacao: Optional[str] = None


class BlocoSchema(BaseModel):
    """Schema de bloco para resposta da API"""

    id: int
    cliente_id: int
    codigo: str
    status: StatusBloco
    aberto_em: datetime
    fechado_em: Optional[datetime] = None
    observacao: Optional[str] = None

    class Config:
        from_attributes = True


class BlocoDetalhe(BlocoSchema):
    saldo: float


class SaldoBlocoSchema(BaseModel):
    bloco_id: int
    saldo: float


class PedidoVincular(BaseModel):
    pedido_id: int
    valor_pedido: Optional[Decimal] = None  # > 0 gera lançamento PEDIDO automático


class PedidoSchema(BaseModel):
    id: int
    bloco_id: int
    pedido_id: int
    criado_por: Optional[int] = None
    criado_em: datetime

    class Config:
        from_attributes = True


class LancamentoCreate(BaseModel):
    """Schema para inclusão de lançamento em um bloco"""

    tipo_recebimento: str
    valor: Decimal
    data_lancamento: datetime
    bom_para: Optional[datetime] = None
    tipo_cheque: Optional[TipoCheque] = None
    numero_referencia: Optional[str] = None
    status: StatusLancamento = StatusLancamento.PENDENTE
    observacao: Optional[str] = None
    sentido: Optional[Sentido] = None  # Sobrepõe o catálogo quando informado


class PagamentoCreate(BaseModel):
    """Schema de entrada de pagamento (bloco aberto automaticamente se ausente)"""

    cliente_id: int
    forma_pagamento: str
    valor: Decimal
    data_lancamento: datetime
    data_vencimento: Optional[datetime] = None
    tipo_cheque: Optional[TipoCheque] = None
    numero_referencia: Optional[str] = None
    observacoes: Optional[str] = None
    bloco_id: Optional[int] = None


class LancamentoUpdate(BaseModel):
    data_lancamento: Optional[datetime] = None
    bom_para: Optional[datetime] = None
    valor: Optional[Decimal] = None
    tipo_cheque: Optional[TipoCheque] = None
    numero_referencia: Optional[str] = None
    observacao: Optional[str] = None


class LancamentoSchema(BaseModel):
    """Schema de lançamento para resposta da API"""

    id: int
    bloco_id: int
    tipo_recebimento: str
    sentido: Sentido
    valor: float
    data_lancamento: datetime
    bom_para: Optional[datetime] = None
    tipo_cheque: Optional[TipoCheque] = None
    numero_referencia: Optional[str] = None
    status: StatusLancamento
    observacao: Optional[str] = None
    referencia_pedido_id: Optional[int] = None
    referencia_lancamento_id: Optional[int] = None
    criado_por: Optional[int] = None
    criado_em: datetime

    class Config:
        from_attributes = True


class VinculoPedidoResposta(BaseModel):
    pedido: PedidoSchema
    lancamento: Optional[LancamentoSchema] = None


class DesvinculoResposta(BaseModel):
    message: str
    estorno: Optional[LancamentoSchema] = None


class PaginaBlocos(BaseModel):
    data: List[BlocoSchema]
    page: int
    limit: int
    total: int


class PaginaLancamentos(BaseModel):
    data: List[LancamentoSchema]
    page: int
    limit: int
    total: int


class PaginaPedidos(BaseModel):
    data: List[PedidoSchema]
    page: int
    limit: int
    total: int


class SaldoClienteSchema(BaseModel):
    cliente_id: int
    saldo: float


class ExposicaoSchema(BaseModel):
    """Exposição = débito dos blocos abertos + contas a receber"""

    cliente_id: int
    saldo_blocos_abertos: float
    contas_a_receber: float
    exposicao: float


class FechamentoCreate(BaseModel):
    observacao: Optional[str] = None


class FechamentoSchema(BaseModel):
    data_ref: date
    criado_por: Optional[int] = None
    criado_em: datetime
    observacao: Optional[str] = None

    class Config:
        from_attributes = True


class FechamentoItemSchema(BaseModel):
    data_ref: date
    lancamento_id: int
    status_no_dia: StatusLancamento
    status_atual: StatusLancamento
    tipo_recebimento: str
    sentido: Sentido
    valor: float
    bom_para: Optional[datetime] = None
    bloco_id: int
    cliente_id: int
    nome_fantasia: Optional[str] = None


class GrupoResumo(BaseModel):
    quantidade: int
    valor: float


class FechamentoResumo(BaseModel):
    qtd_itens: int
    total_entradas: float
    total_saidas: float
    por_status: Dict[str, GrupoResumo] = Field(default_factory=dict)
    por_tipo: Dict[str, GrupoResumo] = Field(default_factory=dict)


class FechamentoDetalhe(BaseModel):
    """Cabeçalho, itens e resumo do fechamento"""

    fechamento: FechamentoSchema
    itens: List[FechamentoItemSchema]
    resumo: FechamentoResumo
