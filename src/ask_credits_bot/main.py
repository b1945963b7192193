"""Application entrypoint - aiohttp server exposing the slash commands."""

import logging
from dataclasses import asdict

import structlog
from aiohttp import web
from aiohttp.web import Application, Request, Response, run_app
from pydantic import ValidationError

from ask_credits_bot.commands import CommandRouter, InteractionRequest, create_router
from ask_credits_bot.config import Settings, get_settings
from ask_credits_bot.credits import CreditLedger, InMemoryCreditStore, SqliteCreditStore
from ask_credits_bot.llm import AnswerClient, EchoAnswerClient
from ask_credits_bot.session import SessionAffinityCache
from ask_credits_bot.storage import ChatLogStore, Database


def configure_logging(
    log_level: str = "INFO",
    log_file: str = "",
    log_file_max_bytes: int = 10_485_760,
    log_file_backup_count: int = 5,
) -> None:
    """Configure structlog and standard library logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file. Empty string = console only.
        log_file_max_bytes: Max size per log file before rotation (default: 10 MB)
        log_file_backup_count: Number of rotated backup files to keep (default: 5)
    """
    from logging.handlers import RotatingFileHandler
    from pathlib import Path

    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.root
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=log_file_max_bytes,
            backupCount=log_file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            # JSON lines in the log file, human-readable on the console
            structlog.processors.JSONRenderer() if log_file else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


async def interactions(request: Request) -> Response:
    router: CommandRouter = request.app["router"]
    try:
        body = await request.json()
    except ValueError:
        return web.json_response({"error": "Request body must be JSON."}, status=400)
    if not isinstance(body, dict):
        return web.json_response({"error": "Request body must be a JSON object."}, status=400)

    try:
        interaction = InteractionRequest.model_validate(body).to_interaction()
    except ValidationError as e:
        logger.warning("interaction_rejected", errors=e.error_count())
        return web.json_response(
            {
                "error": "Invalid interaction.",
                "details": e.errors(
                    include_url=False, include_context=False, include_input=False
                ),
            },
            status=400,
        )

    await router.handle(interaction)
    return web.json_response({"replies": [asdict(r) for r in interaction.replies]})


async def list_commands(request: Request) -> Response:
    router: CommandRouter = request.app["router"]
    return web.json_response({"commands": router.describe()})


async def health(request: Request) -> Response:
    """Health check endpoint - no authentication required."""
    sessions: SessionAffinityCache = request.app["sessions"]
    return web.json_response({"status": "healthy", "sessions": sessions.size})


async def _start_background_tasks(app: Application) -> None:
    app["sessions"].start()


async def _cleanup(app: Application) -> None:
    await app["sessions"].stop()
    await app["answerer"].close()
    if app["database"] is not None:
        app["database"].close()


def create_app(settings: Settings | None = None) -> Application:
    """Create and configure the aiohttp application."""
    settings = settings or get_settings()

    sessions = SessionAffinityCache(
        ttl=settings.session_ttl,
        sweep_interval=settings.session_sweep_interval,
        maxsize=settings.session_maxsize or None,
    )

    # Durable store (optional, falls back to an in-memory ledger)
    database = None
    chat_log = None
    if settings.credit_db_path:
        database = Database(settings.credit_db_path, timeout=settings.store_timeout)
        store = SqliteCreditStore(database)
        chat_log = ChatLogStore(database)
        logger.info("credit_store_initialized", mode="sqlite", path=settings.credit_db_path)
    else:
        store = InMemoryCreditStore()
        logger.warning("credit_store_initialized", mode="memory", reason="CREDIT_DB_PATH not set")

    ledger = CreditLedger(
        store,
        bonus_amount=settings.credit_bonus_amount,
        timeout=settings.store_timeout,
    )

    # Completion client (optional, graceful fallback to echo mode)
    if settings.openai_api_key:
        answerer = AnswerClient(settings)
        logger.info("answer_client_initialized", model=settings.openai_model)
    else:
        answerer = EchoAnswerClient()
        logger.info("answer_client_disabled", reason="OPENAI_API_KEY not set")

    router = create_router(
        ledger,
        sessions,
        answerer,
        ask_cost=settings.ask_credit_cost,
        chat_log=chat_log,
    )

    app = Application()
    app["settings"] = settings
    app["sessions"] = sessions
    app["ledger"] = ledger
    app["answerer"] = answerer
    app["database"] = database
    app["router"] = router

    app.router.add_post("/api/interactions", interactions)
    app.router.add_get("/api/commands", list_commands)
    app.router.add_get("/health", health)

    app.on_startup.append(_start_background_tasks)
    app.on_cleanup.append(_cleanup)

    return app


def main() -> None:
    """Run the bot server."""
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    logger.info(
        "starting_bot_server",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )

    app = create_app(settings)
    run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
