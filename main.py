import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.dependencies import get_settings
from app.logging_config import setup_logging
from app.routers import onboarding, tenants, webhook

setup_logging()

logger = logging.getLogger("app.main")

settings = get_settings()

app = FastAPI(title="Social Inbox Backend")

allowed_origins = ["http://localhost:5173", settings.frontend_url, *settings.allowed_origins]
app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted({origin.strip() for origin in allowed_origins if origin and origin.strip()}),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("%s %s | Origin: %s", request.method, request.url.path, request.headers.get("origin", "None"))
    return await call_next(request)


# Include Routers
app.include_router(onboarding.router)
app.include_router(webhook.router)
app.include_router(tenants.router)


@app.get("/")
def read_root():
    return {"message": "Social inbox backend is running"}
