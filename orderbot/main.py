from fastapi import FastAPI
from loguru import logger

from orderbot.api.deps import build_event_router, load_directory
from orderbot.api.routes import health, whatsapp
from orderbot.core.config import settings
from orderbot.core.db import AsyncSessionLocal, engine
from orderbot.core.logging_config import setup_logging
from orderbot.infrastructure.db.base import Base
from orderbot.infrastructure.db.stores import SqlOperatorDirectory

app = FastAPI(title=settings.APP_NAME)


@app.on_event("startup")
async def startup():
    setup_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    event_router = build_event_router(AsyncSessionLocal)
    counts = await load_directory(event_router.identity, SqlOperatorDirectory(AsyncSessionLocal))
    app.state.event_router = event_router
    logger.info(
        "{} started ({}): {} vendors, {} delivery partners, {} verified customers from the database",
        settings.APP_NAME, settings.ENVIRONMENT,
        counts["vendors"], counts["delivery_partners"], counts["verified_customers"],
    )


@app.on_event("shutdown")
async def shutdown():
    await engine.dispose()


app.include_router(health.router)
app.include_router(whatsapp.router)
