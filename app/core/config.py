# app/core/config.py
from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ambiente
    ENV: str = "dev"  # dev | prod
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # App
    PROJECT_NAME: str = "Agriis Negociação"
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Banco de dados
    DATABASE_URL: str = "sqlite:///./agriis.db"

    # Carrinho / pedido
    PEDIDO_DIAS_LIMITE_PADRAO: int = 7
    PEDIDO_MAX_TENTATIVAS_CONCORRENCIA: int = 3

    # Transporte: agendamentos só até N dias à frente
    TRANSPORTE_HORIZONTE_DIAS: int = 90

    # Tabela base de frete (colaborador externo de tarifas)
    FRETE_VALOR_POR_KG_KM: Decimal = Decimal("0.05")
    FRETE_VALOR_MINIMO: Decimal = Decimal("50.00")
    FRETE_DESCONTO_CONSOLIDACAO_PCT: Decimal = Decimal("10")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
