"""HTTP surface: FastAPI routes and the uvicorn runner."""

from __future__ import annotations

import html
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from ecr_pullthrough_webhook import __version__
from ecr_pullthrough_webhook.admission import AdmissionPipeline, DecodeError
from ecr_pullthrough_webhook.certs import CertReloader
from ecr_pullthrough_webhook.config import Settings
from ecr_pullthrough_webhook.rewrite import RegistryCatalog

logger = logging.getLogger(__name__)


def create_app(pipeline: AdmissionPipeline) -> FastAPI:
    """Build the webhook app around an already configured pipeline."""
    app = FastAPI(title="ECR Pull-through Webhook", version=__version__)
    app.state.pipeline = pipeline

    @app.post("/mutate")
    async def mutate(request: Request) -> Response:
        body = await request.body()
        try:
            mutated = request.app.state.pipeline.mutate(body)
        except DecodeError as exc:
            logger.error("Failed to mutate request: %s", exc)
            return PlainTextResponse(str(exc), status_code=500)
        except Exception as exc:
            logger.exception("Unexpected error mutating request")
            return PlainTextResponse(str(exc), status_code=500)
        return Response(content=mutated, media_type="application/json")

    @app.get("/healthz")
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/{path:path}")
    async def root(path: str) -> PlainTextResponse:
        return PlainTextResponse(f'ECR Pull-through webhook "/{html.escape(path)}"')

    return app


def build_pipeline(settings: Settings) -> AdmissionPipeline:
    catalog = RegistryCatalog.from_registries(settings.registries, settings.cache_hostname)
    logger.info(
        "Rewriting registries %s to %s",
        ", ".join(catalog.registries),
        catalog.cache_hostname,
    )
    return AdmissionPipeline(catalog)


def serve(settings: Settings) -> None:
    """Run the webhook until interrupted.

    Serves TLS with hot-reloading when both certificate files exist, plain
    HTTP otherwise.
    """
    app = create_app(build_pipeline(settings))
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        timeout_keep_alive=10,
    )
    config.load()

    if settings.tls_enabled:
        reloader = CertReloader(settings.cert_file, settings.key_file)
        # Must follow load(), which resets config.ssl.
        config.ssl = reloader.server_context()
        logger.info("Starting server with dynamic TLS reloading on %s:%d", settings.host, settings.port)
    else:
        logger.info("Starting server without TLS on %s:%d", settings.host, settings.port)

    uvicorn.Server(config).run()
