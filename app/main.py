from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api import auth, chat, funds, health, permissions, wallet
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

setup_logging()

# Create FastAPI app
app = FastAPI(
    title="SpendChat API",
    description="Wallet-authenticated chat assistant that moves USDC through spend permissions",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestLoggingMiddleware)

# Session cookies need credentialed CORS, so origins are explicit
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, tags=["Auth"])
app.include_router(chat.router, tags=["Chat"])
app.include_router(wallet.router, tags=["Wallet"])
app.include_router(permissions.router, tags=["Permissions"])
app.include_router(funds.router, tags=["Funds"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "SpendChat API",
        "version": "0.1.0",
        "description": "Wallet-authenticated chat assistant that moves USDC through spend permissions",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
