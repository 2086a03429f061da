"""
Configurações da aplicação
"""

from decimal import Decimal
from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configurações da aplicação carregadas do .env"""
    
    # Ambiente
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    
    # Database (suporta SQLite local e PostgreSQL)
    database_url: str = "sqlite:///./data/backoffice.db"
    lock_timeout_seconds: float = 20.0  # Espera máxima por lock antes de virar conflito
    
    # Servidor
    host: str = "0.0.0.0"
    port: int = 8000
    
    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"  # Separado por vírgula
    
    # Tipos de recebimento livres além da tabela fixa (sempre SAIDA)
    tipos_recebimento_extras: List[str] = []
    
    # Tolerâncias monetárias
    tolerancia_baixa: Decimal = Decimal("0.0001")
    tolerancia_conciliacao: Decimal = Decimal("0.01")
    
    paginacao_limite_maximo: int = 200
    
    # Paths
    data_dir: Path = Path("./data")
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Instância global de settings
settings = Settings()


def ensure_directories():
    """Cria os diretórios necessários se não existirem"""
    settings.data_dir.mkdir(parents=True, exist_ok=True)


# Inicializar diretórios ao importar
ensure_directories()
