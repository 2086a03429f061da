"""
Taxonomia de erros do razão de blocos.

Cada erro carrega uma categoria estável e um status HTTP próprio, para que a
camada de chamada decida entre repetir ou mostrar ao usuário sem depender do
texto da mensagem.
"""

from typing import Optional


class ErroRazao(Exception):
    """Base de todos os erros de domínio"""

    categoria = "INTERNO"
    status_code = 500

    def __init__(self, mensagem: str):
        super().__init__(mensagem)
        self.mensagem = mensagem

    def to_dict(self) -> dict:
        return {"categoria": self.categoria, "message": self.mensagem}


class ErroValidacao(ErroRazao):
    """Campo ausente ou malformado"""

    categoria = "VALIDACAO"
    status_code = 422

    def __init__(self, campo: str, mensagem: str):
        super().__init__(mensagem)
        self.campo = campo

    def to_dict(self) -> dict:
        dados = super().to_dict()
        dados["campo"] = self.campo
        return dados


class ErroNaoEncontrado(ErroRazao):
    categoria = "NAO_ENCONTRADO"
    status_code = 404


class ErroConflito(ErroRazao):
    """Violação de invariante. `retentavel` só para timeout de lock."""

    categoria = "CONFLITO"
    status_code = 409

    def __init__(self, mensagem: str, retentavel: bool = False):
        super().__init__(mensagem)
        self.retentavel = retentavel

    def to_dict(self) -> dict:
        dados = super().to_dict()
        dados["retentavel"] = self.retentavel
        return dados


class ErroEstadoInvalido(ErroRazao):
    categoria = "ESTADO_INVALIDO"
    status_code = 400


class ErroInterno(ErroRazao):
    categoria = "INTERNO"
    status_code = 500

    def __init__(self, mensagem: str = "Erro interno no servidor", operacao: Optional[str] = None):
        super().__init__(mensagem)
        self.operacao = operacao
