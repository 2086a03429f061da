"""
Configuração do banco de dados SQLAlchemy
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool
from backoffice.core.config import settings
from backoffice.core.erros import ErroConflito, ErroInterno, ErroRazao
from backoffice.models.base import Base

# Importa modelos para garantir registro no metadata
from backoffice.models import (
    Cliente, Bloco, BlocoPedido, BlocoLancamento,
    FechamentoDia, FechamentoItem, FinanceiroTitulo, FinanceiroBaixa,
)  # noqa: F401

logger = logging.getLogger(__name__)

# SQLSTATE do PostgreSQL: falha de serialização, deadlock e lock não obtido
SQLSTATES_CONCORRENCIA = {"40001", "40P01", "55P03"}
MENSAGENS_LOCK_SQLITE = ("database is locked", "database table is locked", "database is busy")


def _set_sqlite_pragma(dbapi_conn, connection_record):
    """Habilita WAL mode, chaves estrangeiras e timeout de lock do SQLite"""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={int(settings.lock_timeout_seconds * 1000)}")
    cursor.close()


def configurar_sqlite(engine_sqlite):
    """Registra os pragmas em toda conexão nova (usado também nos testes)"""
    event.listen(engine_sqlite, "connect", _set_sqlite_pragma)


# Configuração do engine para SQLite
connect_args = {}
poolclass = None

if "sqlite" in settings.database_url:
    # SQLite: configurações para evitar "database is locked"
    connect_args = {
        "check_same_thread": False,
        "timeout": settings.lock_timeout_seconds
    }
    # Usa NullPool para SQLite (evita pool de conexões que pode causar locks)
    poolclass = NullPool

# Cria engine (um pool por processo)
engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    poolclass=poolclass,
    pool_pre_ping=True,  # Verifica conexão antes de usar
    echo=False
)

# Registra evento para SQLite
if "sqlite" in settings.database_url:
    configurar_sqlite(engine)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Cria todas as tabelas no banco de dados"""
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Session:
    """
    Dependency para obter sessão do banco de dados.
    Usar com Depends(get_db) no FastAPI.

    Garante que a sessão seja fechada corretamente e faz rollback em caso de erro.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        if not isinstance(e, ErroRazao):
            logger.error(f"Erro na sessão do banco: {e}", exc_info=True)
        raise
    finally:
        db.close()


def falha_de_concorrencia(erro: OperationalError) -> bool:
    """True para timeout de lock ou falha de serialização; demais falhas são internas"""
    origem = erro.orig
    sqlstate = getattr(origem, "sqlstate", None) or getattr(origem, "pgcode", None)
    if sqlstate:
        return sqlstate in SQLSTATES_CONCORRENCIA
    mensagem = str(origem).lower()
    return any(trecho in mensagem for trecho in MENSAGENS_LOCK_SQLITE)


@contextmanager
def transacao(db: Session, operacao: str, serializavel: bool = False, **contexto):
    """
    Fronteira transacional de toda operação de escrita.

    Args:
        db: Sessão do banco de dados
        operacao: Nome da operação (vai para o log)
        serializavel: Pede isolamento SERIALIZABLE para a transação
        contexto: Identificadores logados em caso de falha (data, ids)

    Erros de domínio passam adiante após rollback. IntegrityError vira conflito,
    timeout de lock / falha de serialização vira conflito retentável e o resto
    vira erro interno.
    """
    if serializavel:
        if db.in_transaction():
            logger.warning(
                f"{operacao}: sessão já em transação, isolamento SERIALIZABLE não aplicado"
            )
        else:
            db.connection(execution_options={"isolation_level": "SERIALIZABLE"})

    try:
        yield db
        db.commit()
    except ErroRazao:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"{operacao}: violação de integridade {contexto}: {e.orig}")
        raise ErroConflito(f"Violação de integridade em {operacao}") from e
    except OperationalError as e:
        db.rollback()
        if not falha_de_concorrencia(e):
            logger.error(f"{operacao}: erro de banco {contexto}: {e}", exc_info=True)
            raise ErroInterno(operacao=operacao) from e
        logger.warning(f"{operacao}: lock/serialização falhou {contexto}: {e.orig}")
        raise ErroConflito(
            f"Operação concorrente em andamento ({operacao}), tente novamente",
            retentavel=True,
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{operacao}: erro de banco {contexto}: {e}", exc_info=True)
        raise ErroInterno(operacao=operacao) from e
    except Exception:
        db.rollback()
        logger.error(f"{operacao}: falha inesperada {contexto}", exc_info=True)
        raise
