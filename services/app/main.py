from fastapi import FastAPI, Request
from fastapi.responses import Response
from typing import Optional
from .gateway import (
    ChatDispatcher,
    ClientRateLimiter,
    ErrorResponse,
    HealthStatus,
    ProviderRouter,
    ProviderTransport,
    build_adapters,
    health,
)
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Chat Gateway Service", version="0.1.0")

_provider_transport: Optional[ProviderTransport] = None
_chat_dispatcher: Optional[ChatDispatcher] = None


def _get_provider_transport() -> ProviderTransport:
    global _provider_transport
    if _provider_transport is None:
        _provider_transport = ProviderTransport()
    return _provider_transport


def _get_chat_dispatcher() -> ChatDispatcher:
    global _chat_dispatcher
    if _chat_dispatcher is None:
        router = ProviderRouter(logger=logger)
        _chat_dispatcher = ChatDispatcher(
            router=router,
            limiter=ClientRateLimiter(),
            adapters=build_adapters(router, _get_provider_transport()),
            logger=logger,
        )
    return _chat_dispatcher


@app.on_event("shutdown")
async def _shutdown_provider_transport():
    global _provider_transport
    if _provider_transport is not None:
        await _provider_transport.aclose()
        _provider_transport = None


# ============== Chat Routes ==============

@app.get("/chat", response_model=HealthStatus)
@app.get("/api/chat", response_model=HealthStatus)
async def chat_health():
    return health(ProviderRouter())


_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@app.post("/chat", responses=_ERROR_RESPONSES)
@app.post("/api/chat", responses=_ERROR_RESPONSES)
async def chat(request: Request) -> Response:
    return await _get_chat_dispatcher().handle(request)
