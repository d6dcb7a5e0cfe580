# Run from project root: uvicorn interrogator.main:app --reload

import logging

from fastapi import FastAPI

from interrogator.api.routes import router

logging.basicConfig(level=logging.INFO)


app = FastAPI(title="Interrogation Engine")
app.include_router(router)
