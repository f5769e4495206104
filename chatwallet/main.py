from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import health, webhook
from .bot.handlers import shutdown_assistant
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await shutdown_assistant()


app = FastAPI(
    title="Chat Wallet",
    description="Conversational custodial Solana wallet behind a Telegram webhook",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(health.router, tags=["Health"])
app.include_router(webhook.router, tags=["Webhook"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Chat Wallet",
        "version": "0.1.0",
        "webhook": "/webhook",
        "health": "/healthz",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chatwallet.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
