"""Chai ordering API service entrypoint."""

from fastapi import FastAPI

from services.api.app.db.init_db import init_db
from services.api.app.routers.coupon import router as coupon_router
from services.api.app.routers.order import router as order_router

app = FastAPI(title="Chai Orders API")

app.include_router(coupon_router)
app.include_router(order_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
