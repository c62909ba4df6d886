import logging

from fastapi import FastAPI, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.websockets import WebSocketDisconnect
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import RedirectResponse

from .config import CONFIG
from .db import create_db_and_tables, seed_if_empty
from .errors import PosError
from .ws import manager
from . import (
    routes_customers,
    routes_inventory,
    routes_kds_summary,
    routes_menu,
    routes_orders,
    routes_payments,
    routes_reports,
    routes_users,
    views_kds,
)

log = logging.getLogger("tesorito")

app = FastAPI(title="Tesorito POS")


@app.on_event("startup")
def on_startup():
    logging.basicConfig(
        level=getattr(logging, CONFIG.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    create_db_and_tables()
    seed_if_empty()
    log.info("Tesorito POS ready (stock policy: %s)", CONFIG.inventory.stock_policy)


# ---- errori -> JSON {"error", "details"} ----

@app.exception_handler(PosError)
async def pos_error_handler(request: Request, exc: PosError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        details.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health", response_class=PlainTextResponse)
def health():
    return "OK"


@app.get("/", include_in_schema=False)
def index():
    return RedirectResponse(url="/kitchen", status_code=307)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)


app.include_router(routes_orders.router)
app.include_router(routes_menu.router)
app.include_router(routes_inventory.router)
app.include_router(routes_customers.router)
app.include_router(routes_payments.router)
app.include_router(routes_reports.router)
app.include_router(routes_users.router)
app.include_router(views_kds.router)
app.include_router(routes_kds_summary.router)
