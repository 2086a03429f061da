"""
Paginação simples de queries (page começa em 1)
"""

from typing import List, Tuple

from backoffice.core.config import settings
from backoffice.core.erros import ErroValidacao


def paginar(query, page: int = 1, limit: int = 50) -> Tuple[List, int]:
    if page < 1:
        raise ErroValidacao("page", "page deve ser >= 1")
    if limit < 1 or limit > settings.paginacao_limite_maximo:
        raise ErroValidacao(
            "limit", f"limit deve estar entre 1 e {settings.paginacao_limite_maximo}"
        )
    total = query.order_by(None).count()
    itens = query.offset((page - 1) * limit).limit(limit).all()
    return itens, total
