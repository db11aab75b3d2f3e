# module backend.app
"""
Application FastAPI unique du backend (construite par la factory).
La configuration du logging applicatif reste celle d'uvicorn (LOG_LEVEL, voir backend.__main__).
"""
from backend.app_setup.factory import create_app

app = create_app()
