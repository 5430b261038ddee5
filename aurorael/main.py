import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from aurorael.config import CONFIG, _Config
from aurorael.conversation import ChatService
from aurorael.gate import InFlightGate
from aurorael.model import GeminiBackend, ModelBackend, ModelClient
from aurorael.routers.chat import router as chat_router
from aurorael.sessions import SessionStore
from aurorael.weather import WeatherClient


# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler()  # Ensure logs go to stdout/stderr
    ]
)
# --------------------------


def create_app(
    config: Optional[_Config] = None,
    *,
    model_backend: Optional[ModelBackend] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    cfg = config or CONFIG

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        http_client = httpx.AsyncClient(timeout=cfg.http_timeout_sec, transport=transport)
        sessions = SessionStore(ttl_sec=cfg.session_ttl_sec)
        weather = WeatherClient(
            http_client,
            api_key=cfg.openweather_api_key,
            base_url=cfg.openweather_base,
            geo_base_url=cfg.openweather_geo_base,
            user_agent=cfg.user_agent,
        )
        model = ModelClient(
            model_backend or GeminiBackend(cfg.gemini_api_key),
            primary_model=cfg.model_primary,
            fallback_model=cfg.model_fallback,
            timeout_sec=cfg.model_timeout_sec,
            transient_retries=cfg.model_transient_retries,
            backoff_base_sec=cfg.model_backoff_base_sec,
            temperature=cfg.model_temperature,
            max_output_tokens=cfg.model_max_output_tokens,
        )
        app.state.http_client = http_client
        app.state.sessions = sessions
        app.state.gate = InFlightGate(cfg.max_in_flight)
        app.state.chat_service = ChatService(sessions, weather, model, cfg)
        logging.info(
            "Aurorael ready: primary=%s fallback=%s weather_key_set=%s",
            cfg.model_primary,
            cfg.model_fallback,
            bool(cfg.openweather_api_key),
        )
        try:
            yield
        finally:
            await http_client.aclose()

    limiter = Limiter(key_func=get_remote_address, default_limits=[cfg.rate_limit])

    app = FastAPI(title="Aurorael", lifespan=lifespan)
    app.state.config = cfg
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=512)
    app.include_router(chat_router, prefix="/api")

    @app.get("/")
    async def root(_: Request):
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    port = int(os.getenv("PORT", "3000"))
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
