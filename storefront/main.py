import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import cart_router, order_router
from .models import Base
from .database import engine
from .user_events_consumer import start_user_registered_consumer

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_EVENT_CONSUMERS = os.getenv("ENABLE_EVENT_CONSUMERS", "1") == "1"

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Storefront Service",
    description="Cart, checkout and order history for the storefront",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cart_router.router)
app.include_router(order_router.router)


@app.on_event("startup")
def _startup() -> None:
    Base.metadata.create_all(bind=engine)
    if ENABLE_EVENT_CONSUMERS:
        # Carts are created when the auth service announces a new account
        start_user_registered_consumer()


@app.get("/")
def root():
    return {
        "service": "Storefront Service",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": "storefront"
    }
