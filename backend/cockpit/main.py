from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from .core.config import settings
from .core.errors import CockpitError
from .core.logging import setup_logging
from .db.session import init_db
from .api.v1 import cron, focus_blocks, health, tasks, today

setup_logging()

app = FastAPI(title=settings.APP_NAME)
app.include_router(health.router, prefix=settings.API_V1_PREFIX)
app.include_router(tasks.router,  prefix=settings.API_V1_PREFIX)
app.include_router(focus_blocks.router, prefix=settings.API_V1_PREFIX)
app.include_router(today.router,  prefix=settings.API_V1_PREFIX)
app.include_router(cron.router,   prefix=settings.API_V1_PREFIX)

@app.exception_handler(CockpitError)
async def on_cockpit_error(request: Request, exc: CockpitError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.on_event("startup")
def on_startup():
    init_db()
