"""
CEE Valorisation & Rentability API
Stateless FastAPI front for the calculation engine: no database, no auth.
"""
import os
import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cee_engine.services.logging_config import setup_logging
from cee_engine.services.middleware import RequestTimingMiddleware
from cee_engine.api.rentability_routes import router as rentability_router

load_dotenv()

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("cee-engine.api")

APP_VERSION = "1.0.0"

app = FastAPI(
    title="CEE Valorisation & Rentability API",
    version=APP_VERSION,
    description="CEE prime valorisation and site profitability for renovation projects",
)

# ---------------------------------------------------------------------------
# CORS: allowed origins from env
# ---------------------------------------------------------------------------
_cors_default = "http://localhost:3000,http://localhost:8000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

app.include_router(rentability_router)

logger.info(f"CEE engine API {APP_VERSION} ready ({len(cors_origins)} CORS origins)")


@app.get("/health")
async def health_check():
    return {"status": "active", "version": APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cee_engine.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
