import logging
import os
import sqlite3
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from contact_store import ContactStore
from db_models import IdentifyRequest, FinalResponse
from db_setup import init_db, get_db_connection
from resolver import IdentityResolver


def _log_level(name: str) -> str:
    name = (name or "").strip().upper()
    if isinstance(logging.getLevelName(name), int):
        return name
    return "INFO"


LOG_LEVEL = _log_level(os.getenv("LOG_LEVEL", "INFO"))

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Contact database ready")
    yield


app = FastAPI(
    title="Bitespeed Contact Reconciliation API",
    version="1.0.0",
    lifespan=lifespan,
)


def get_store():
    conn = get_db_connection()
    try:
        yield ContactStore(conn)
    finally:
        conn.close()


@app.exception_handler(sqlite3.Error)
async def store_error_handler(request: Request, exc: sqlite3.Error):
    logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
async def root():
    return {"message": "Bitespeed API is up"}


@app.post("/identify", response_model=FinalResponse)
def identify(request: IdentifyRequest, store: ContactStore = Depends(get_store)):
    email = request.email
    phone = request.phoneNumber

    if not email and not phone:
        raise HTTPException(status_code=400, detail="Either email or phoneNumber must be provided")

    with store.transaction():
        contact = IdentityResolver(store).identify(email, phone)

    return FinalResponse(contact=contact)


if __name__ == "__main__":
    import uvicorn

    port = os.getenv("PORT", "8000")
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(port) if port.isdigit() else 8000)
