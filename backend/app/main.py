from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from app.core.config import settings
from app.core.logging_config import setup_logging
from app.routers import cms_integrations, cms_webhooks, sync_logs, tenants

setup_logging()

OPENAPI_TAGS = [
    {"name": "CMS Integrations", "description": "Configure CMS connections, run syncs and inspect history."},
    {"name": "Sync Logs", "description": "Sync runs and their per-document outcomes."},
    {"name": "CMS Webhooks", "description": "Inbound push notifications from upstream CMSs."},
    {"name": "Tenants", "description": "Tenants that own CMS integrations."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "CMS synchronization API. Connect WordPress, Contentful, Strapi, Ghost "
        "and custom REST sources, map their fields, and keep the document index "
        "in sync through full, incremental and webhook-driven runs."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


app.include_router(tenants.router, prefix="/v1/tenants", tags=["Tenants"])
app.include_router(
    cms_integrations.router,
    prefix="/v1/cms_integrations",
    tags=["CMS Integrations"],
)
app.include_router(sync_logs.router, prefix="/v1/cms_sync_logs", tags=["Sync Logs"])
app.include_router(cms_webhooks.router, prefix="/v1/cms_webhooks", tags=["CMS Webhooks"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
