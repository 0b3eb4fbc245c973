"""
Vault API entry point

Run with:
    uvicorn vault_api.main:app
or:
    vault-api
"""

import uvicorn

from vault_api.app_factory import create_app
from vault_api.config import get_settings

# Create app instance for uvicorn
app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "vault_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
