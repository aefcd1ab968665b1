from fastapi import FastAPI

from loadguard.app_factory import create_app

app: FastAPI = create_app()
