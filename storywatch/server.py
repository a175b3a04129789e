import asyncio
import contextlib

from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from .bot import CommandHandler
from .config import Settings
from .notifier import Notifier
from .reconciler import ReconciliationLoop
from .registry import RecipientRegistry
from .telegram import TelegramPoller, TelegramTransport
from .validator_api import ValidatorAPI


class WatcherService:
    """Wires the registry, fetcher, notifier, loop and bot together."""

    def __init__(self, settings: Settings):
        self.registry = RecipientRegistry(settings.registry_path)

        logger.info(f"Creating Telegram transport at {settings.telegram.base_url}")
        self.transport = TelegramTransport(
            token=settings.telegram.token,
            base_url=settings.telegram.base_url,
            send_timeout=settings.telegram.send_timeout,
        )

        logger.info(f"Creating validator API for {settings.validator_api.url}")
        self.validator_api = ValidatorAPI(
            url=settings.validator_api.url,
            registry=self.registry,
            height_url=settings.validator_api.height_url,
            info_url=settings.validator_api.info_url,
            timeout=settings.validator_api.timeout,
        )

        self.notifier = Notifier(
            self.transport,
            send_timeout=settings.telegram.send_timeout,
            max_concurrency=settings.loop.max_concurrent_dispatches,
        )
        self.loop = ReconciliationLoop(
            self.validator_api,
            self.notifier,
            min_interval=settings.loop.min_interval,
            backoff_initial=settings.loop.backoff_initial,
            backoff_max=settings.loop.backoff_max,
            fetch_timeout=settings.loop.fetch_timeout,
        )
        self.handler = CommandHandler(
            self.registry,
            self.transport,
            validator_api=self.validator_api,
            is_active=self.loop.is_active,
        )
        self.poller = TelegramPoller(
            self.transport,
            self.handler.handle,
            poll_timeout=settings.telegram.poll_timeout,
        )
        self.background_tasks = []

    def start(self):
        loop = asyncio.get_running_loop()
        self.background_tasks.append(
            loop.create_task(self.loop.run_forever(), name="reconciliation-loop")
        )
        self.background_tasks.append(
            loop.create_task(self.poller.poll_forever(), name="telegram-poller")
        )

    async def stop(self):
        for task in self.background_tasks:
            task.cancel()
        for task in self.background_tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.background_tasks = []
        await self.validator_api.close()
        await self.transport.close()

    def status(self) -> dict:
        previous = self.loop.previous
        last = self.loop.last_result
        return {
            "state": self.loop.state.value,
            "cycles": self.loop.cycles,
            "failures": self.loop.failures,
            "validators": len(previous.all) if previous else 0,
            "active_validators": len(previous.active) if previous else 0,
            "last_cycle": last.status.value if last else None,
            "last_error": last.error if last else None,
        }


settings = Settings()
logger.info(f"Settings: {settings.redacted()}")

SERVICE: WatcherService | None = None

app = FastAPI()


@app.on_event("startup")
async def startup_event():
    global SERVICE
    SERVICE = WatcherService(settings)
    # Start the reconciliation loop and bot polling as background tasks
    SERVICE.start()
    logger.info("Watcher started")


@app.on_event("shutdown")
async def shutdown_event():
    if SERVICE is not None:
        await SERVICE.stop()


security = HTTPBearer(auto_error=False)


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
):
    """Verify the API key from Authorization header."""
    if settings.api_key is None:
        # If no API key is set, allow all requests
        return True

    if credentials is None or credentials.credentials != settings.api_key:
        logger.warning("Invalid API key provided")
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return True


def get_service() -> WatcherService:
    if SERVICE is None:
        raise HTTPException(status_code=503, detail="Watcher not started")
    return SERVICE


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/status")
async def status(authorized: bool = Depends(verify_api_key)):
    return get_service().status()


@app.get("/api/registrations")
async def registrations(authorized: bool = Depends(verify_api_key)):
    service = get_service()
    try:
        return await service.registry.get_all()
    except Exception as e:
        logger.error(f"Error reading registrations: {e}")
        raise HTTPException(status_code=500, detail=str(e))


def main():
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
