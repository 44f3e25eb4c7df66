from fastapi import FastAPI
from .router import router as upload_router

app = FastAPI()

app.include_router(upload_router)
