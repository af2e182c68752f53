from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from servicehub import config
from servicehub.routers import availability, matching, service_requests
from servicehub.wiring import category_directory

app = FastAPI(title="ServiceHub Matching API", version="0.1.0")

allow_any_origin = len(config.CORS_ORIGINS) == 1 and config.CORS_ORIGINS[0] == "*"

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    # Browsers reject wildcard CORS with credentials enabled.
    allow_credentials=not allow_any_origin,
    allow_methods=["*"],
    allow_headers=["*"],
)

if not (len(config.TRUSTED_HOSTS) == 1 and config.TRUSTED_HOSTS[0] == "*"):
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=config.TRUSTED_HOSTS)

app.include_router(matching.router)
app.include_router(availability.router)
app.include_router(service_requests.router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/ready")
def ready():
    return {
        "status": "ready",
        "categories_loaded": len(category_directory.list_categories()),
        "match_telemetry": config.MATCH_TELEMETRY_ENABLED,
    }
