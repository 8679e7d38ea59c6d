"""
Relay Server - Receive event deliveries and forward them downstream.

Provides:
- HTTP endpoint for the event source (handshake and event batches)
- Health check
- Prometheus metrics
"""

from contextlib import asynccontextmanager
from typing import Optional
import time

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from eventrelay.__version__ import __version__
from eventrelay.core.config import RelayConfig, get_config
from eventrelay.core.observability import MetricsCollector
from eventrelay.logging import LogLevel, get_logger, install_redaction
from eventrelay.webhooks.candidates import select_candidates
from eventrelay.webhooks.composer import RelayResponse, compose_fault
from eventrelay.webhooks.pipeline import RelayPipeline

WEBHOOK_PATH = "/api/eventgrid-proxy"


class RelayServer:
    """
    HTTP server for receiving event deliveries.

    Features:
    - FastAPI-based server
    - Subscription validation handshake
    - Retrying, fallback-aware forwarding
    - Always acknowledges with HTTP 200

    Example:
        >>> server = RelayServer(RelayConfig(stable_url="https://example.com/hook?sig=x"))
        >>> app = server.get_app()
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
        **forwarder_options
    ):
        """
        Initialize relay server.

        Args:
            config: Relay configuration (process configuration if omitted)
            client: HTTP client to forward with; owned by the caller if given
            metrics: Metrics collector
            **forwarder_options: Extra Forwarder arguments (sleep, rng)
        """
        self.config = config or get_config()
        self.metrics = metrics or MetricsCollector()
        self.logger = get_logger("eventrelay.server", LogLevel(self.config.log_level.lower()))
        self._owns_client = client is None
        self._client = client
        self._forwarder_options = forwarder_options
        self._pipeline: Optional[RelayPipeline] = None

        install_redaction()

        self.app = FastAPI(
            title="eventrelay",
            version=__version__,
            lifespan=self._lifespan
        )
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        labels = [c.label for c in select_candidates(self.config)]
        if not labels:
            self.logger.error("LOGICAPP_CALLBACK_URL is NOT set; deliveries will not be forwarded")
        else:
            self.logger.info("Relay started", candidates=labels, **self.config.summary())
        try:
            yield
        finally:
            await self.aclose()

    @property
    def pipeline(self) -> RelayPipeline:
        """Pipeline bound to the shared HTTP client, created on first use."""
        if self._pipeline is None:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
            self._pipeline = RelayPipeline.from_config(
                self.config,
                self._client,
                metrics=self.metrics,
                **self._forwarder_options
            )
        return self._pipeline

    async def aclose(self) -> None:
        """Close the HTTP client if this server created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._pipeline = None

    async def handle_request(self, request: Request) -> RelayResponse:
        """Run one delivery through the pipeline. Never raises."""
        try:
            body = await request.body()
            return await self.pipeline.handle(body)
        except Exception as e:
            self.logger.error("Error receiving event delivery", error=type(e).__name__, details=str(e))
            self.metrics.record_fault()
            return compose_fault(e)

    def _setup_routes(self):
        """Setup FastAPI routes."""

        async def receive_events(request: Request):
            """Receive an event delivery."""
            relay_response = await self.handle_request(request)
            return JSONResponse(
                status_code=relay_response.status_code,
                content=relay_response.body
            )

        self.app.add_api_route(WEBHOOK_PATH, receive_events, methods=["POST"])
        self.app.add_api_route("/", receive_events, methods=["POST"])

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {
                "status": "healthy",
                "version": __version__,
                "candidates": [c.label for c in select_candidates(self.config)],
                "fallback_enabled": self.config.fallback_enabled,
                "timestamp": time.time()
            }

        @self.app.get("/metrics")
        async def metrics():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.render(), media_type=self.metrics.content_type)

    def get_app(self) -> FastAPI:
        """Get the FastAPI application."""
        return self.app


def create_app(
    config: Optional[RelayConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    **options
) -> FastAPI:
    """
    Create the relay application.

    Used as the uvicorn factory by ``eventrelay serve``.

    Args:
        config: Relay configuration (process configuration if omitted)
        client: HTTP client to forward with
        **options: Extra RelayServer arguments

    Returns:
        FastAPI app
    """
    return RelayServer(config, client, **options).get_app()
