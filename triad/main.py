import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triad.middleware import RequestIdMiddleware
from triad.db import Base, engine
from triad.config import settings
from triad.errors import TriadError

from triad.routers import auth, admin, dining, menu, orders, inventory, store, staff, sync

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("triad")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("triad started (env=%s)", settings.APP_ENV)
    yield


app = FastAPI(title="Triad POS API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(TriadError)
async def triad_error_handler(request: Request, exc: TriadError):
    if exc.status_code >= 409:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(staff.router)
app.include_router(dining.router)
app.include_router(menu.router)
app.include_router(inventory.router)
app.include_router(orders.router)
app.include_router(store.router)
app.include_router(sync.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
