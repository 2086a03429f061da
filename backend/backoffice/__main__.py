"""
Ponto de entrada do servidor

Execução:
    python -m backoffice
"""

import uvicorn

from backoffice.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "backoffice.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
