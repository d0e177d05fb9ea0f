import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from chatapp.config import settings
from chatapp.database import create_tables
from chatapp.logger import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("%s %s started", settings.APP_NAME, settings.VERSION)
    yield

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="One-to-one chat API with real-time delivery",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from chatapp.api import auth, messages, websocket

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(messages.router, prefix="/api/messages", tags=["messages"])
app.include_router(websocket.router, prefix="/api/ws", tags=["websocket"])

@app.get("/")
async def root():
    return {"message": "Chat App API", "version": settings.VERSION}

@app.get("/health")
async def health():
    return {"status": "ok"}
