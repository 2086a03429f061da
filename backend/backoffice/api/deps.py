"""
Dependências compartilhadas das rotas: usuário autenticado e permissões.

A autenticação fica a cargo do gateway, que repassa o usuário nos headers
X-Usuario-Id e X-Usuario-Permissao.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

logger = logging.getLogger(__name__)

PERMISSOES = ("admin", "financeiro", "vendedor")


class Usuario(BaseModel):
    id: int
    permissao: str


def usuario_atual(
    x_usuario_id: Optional[int] = Header(None),
    x_usuario_permissao: Optional[str] = Header(None),
) -> Usuario:
    if x_usuario_id is None or not x_usuario_permissao:
        raise HTTPException(status_code=401, detail="Acesso não autorizado")
    permissao = x_usuario_permissao.strip().lower()
    if permissao not in PERMISSOES:
        raise HTTPException(status_code=401, detail="Permissão desconhecida")
    return Usuario(id=x_usuario_id, permissao=permissao)


def exigir_permissao(*permissoes: str):
    """Dependency que libera a rota apenas para as permissões informadas"""

    def _verificar(usuario: Usuario = Depends(usuario_atual)) -> Usuario:
        if usuario.permissao not in permissoes:
            logger.warning(f"Usuário {usuario.id} ({usuario.permissao}) sem acesso: requer {permissoes}")
            raise HTTPException(status_code=403, detail="Acesso negado")
        return usuario

    return _verificar


# Combinações usadas pelas rotas
somente_gestao = exigir_permissao("admin", "financeiro")
qualquer_perfil = exigir_permissao(*PERMISSOES)
