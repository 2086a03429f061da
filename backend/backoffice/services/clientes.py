"""
Consulta ao cadastro de clientes (o razão nunca altera o cliente)
"""

from sqlalchemy.orm import Session

from backoffice.core.erros import ErroNaoEncontrado
from backoffice.models.cliente import Cliente


def obter_cliente(db: Session, cliente_id: int) -> Cliente:
    cliente = db.get(Cliente, cliente_id)
    if cliente is None:
        raise ErroNaoEncontrado(f"Cliente {cliente_id} não encontrado")
    return cliente
