"""
Point d'entrée de l'API GestImmo
"""
import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)

# Configuration centralisée (DATABASE_URL est vérifiée à l'import)
from app_config import AppConfigurator  # noqa: E402
from constants import APP_NAME, APP_VERSION  # noqa: E402

app = AppConfigurator.create_app()


@app.get("/")
async def root():
    """Point d'entrée de l'API"""
    return {
        "message": f"API {APP_NAME}",
        "version": APP_VERSION,
        "status": "active"
    }


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
