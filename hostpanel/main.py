from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from hostpanel.api import activity, customers, dashboard, packages, websites
from hostpanel.api.utils import register_exception_handlers
from hostpanel.db import engine, init_db
from hostpanel.logging_config import configure_logging

configure_logging()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db(engine)
    yield


app = FastAPI(
    lifespan=lifespan,
    title="HostPanel",
    description="Hosting control panel for provisioning customer accounts on HestiaCP with aaPanel DNS",
    version="0.1.0",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", include_in_schema=False)
def root() -> RedirectResponse:
    """Redirect root URL to Swagger UI docs."""
    return RedirectResponse(url="/docs")


app.include_router(customers.router)
app.include_router(packages.router)
app.include_router(activity.router)
app.include_router(websites.router)
app.include_router(dashboard.router)

register_exception_handlers(app)

if __name__ == "__main__":
    uvicorn.run("hostpanel.main:app", host="0.0.0.0", port=8001, log_level="info", reload=True)
