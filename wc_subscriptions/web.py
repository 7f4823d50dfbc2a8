import json
from typing import Any

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wc_subscriptions.apis.orders import router as orders_router
from wc_subscriptions.apis.products import router as products_router
from wc_subscriptions.apis.tasks import router as tasks_router
from wc_subscriptions.core.config import API_BASE, VERSION, cfg
from wc_subscriptions.core.db import DB
from wc_subscriptions.core.events import E, log_event
from wc_subscriptions.core.log import get_logger, set_trace_id
from wc_subscriptions.jobs.recurring_billing import start_recurring_billing_worker

logger = get_logger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """自定义 JSON 响应类，确保非 ASCII 字符不被转义"""

    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


app = FastAPI(
    title="Subscription for Commerce API",
    description="商品订阅方案、订阅订单与续费排期服务",
    version=VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    default_response_class=UnicodeJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_trace_and_headers(request: Request, call_next):
    tid = set_trace_id(request.headers.get("X-Trace-Id", ""))
    response = await call_next(request)
    response.headers["X-Version"] = VERSION
    response.headers["X-Trace-Id"] = tid
    return response


api_router = APIRouter(prefix=f"{API_BASE}")
api_router.include_router(products_router)
api_router.include_router(orders_router)
api_router.include_router(tasks_router)
app.include_router(api_router)


@app.on_event("startup")
async def on_startup():
    DB.create_tables()
    if cfg.get("billing.worker_enabled", True):
        start_recurring_billing_worker()
    log_event(logger, E.SYSTEM_STARTUP, version=VERSION)


def main():
    uvicorn.run(
        "wc_subscriptions.web:app",
        host=str(cfg.get("server.host", "0.0.0.0")),
        port=int(cfg.get("server.port", 8001)),
    )


if __name__ == "__main__":
    main()
