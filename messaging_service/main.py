# messaging_service/main.py
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from starlette.exceptions import HTTPException

from messaging_service.api import conversations, messages, users
from messaging_service.config import AppConfig
from messaging_service.infrastructure.database import create_database
from messaging_service.infrastructure.event_dispatcher import EventDispatcher
from messaging_service.infrastructure.event_handlers import EventHandlers
from messaging_service.infrastructure.redis_client import RedisClient
from messaging_service.infrastructure.security import SecurityService


class Application:
    def __init__(self, config: AppConfig):
        self.config = config
        self.logger = self.setup_logger()
        engine_options = {}
        if config.DATABASE_URL.endswith(":memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_options = {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        engine = create_async_engine(config.DATABASE_URL, echo=False, **engine_options)
        self.database = create_database(engine)
        self.redis_client = RedisClient(
            config.REDIS_HOST, config.REDIS_PORT, self.logger
        )
        self.event_dispatcher = EventDispatcher()
        self.security_service = SecurityService(config)
        self.event_handlers = EventHandlers(self.redis_client)

        # Register change-feed publishers
        self.event_dispatcher.register(
            "MessageInserted", self.event_handlers.publish_message_inserted
        )
        self.event_dispatcher.register(
            "MessageUpdated", self.event_handlers.publish_message_updated
        )

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.database.connect()
        await self.redis_client.connect()
        yield
        await self.database.disconnect()
        await self.redis_client.disconnect()

    def setup_logger(self):
        logger = logging.getLogger("MessagingAPI")
        logger.setLevel(logging.INFO)

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.PROJECT_NAME,
            version=self.config.PROJECT_VERSION,
            description=self.config.PROJECT_DESCRIPTION,
            openapi_url=f"{self.config.API_PREFIX}/openapi.json",
            lifespan=self.lifespan,
        )

        app.state.config = self.config
        app.state.security_service = self.security_service
        app.state.event_dispatcher = self.event_dispatcher
        app.state.database = self.database
        app.state.logger = self.logger

        app.include_router(
            conversations.router,
            prefix=f"{self.config.API_PREFIX}/conversations",
            tags=["conversations"],
        )
        app.include_router(
            messages.router,
            prefix=f"{self.config.API_PREFIX}/conversations",
            tags=["messages"],
        )
        app.include_router(
            users.router, prefix=f"{self.config.API_PREFIX}/users", tags=["users"]
        )

        @app.exception_handler(HTTPException)
        async def http_exception_handler(request: Request, exc: HTTPException):
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": exc.detail},
                headers=getattr(exc, "headers", None),
            )

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(
            request: Request, exc: RequestValidationError
        ):
            first = exc.errors()[0] if exc.errors() else {}
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = first.get("msg", "Invalid request")
            return JSONResponse(
                status_code=400,
                content={"error": f"{location}: {message}" if location else message},
            )

        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            self.logger.error(f"Unhandled error on {request.url.path}: {exc!s}")
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error"},
            )

        return app


def create(config: AppConfig | None = None) -> FastAPI:
    config = config or AppConfig()
    application = Application(config)
    app = application.create_app()
    application.logger.info("Application created and configured")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create(), host="127.0.0.1", port=8000)
