from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware  # Importa el middleware CORS
from contextlib import asynccontextmanager
import logging
import os
from dotenv import load_dotenv

from app.cash.scheduler import iniciar_scheduler, detener_scheduler
from app.cash.routes_cash import router as cash_router

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

CORS_ORIGINS = [
    origen.strip()
    for origen in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origen.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await iniciar_scheduler()
    yield
    # Shutdown
    detener_scheduler()


app = FastAPI(title="Taller Finanzas", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def read_root():
    return {"message": "Bienvenido a la API de Caja del Taller"}

@app.get("/health")
async def health():
    return {"status": "healthy"}

# Incluir routers
app.include_router(cash_router)
