import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reel2canva.core.config import settings
from reel2canva.api.run import router as run_router
from reel2canva.api.settings import router as settings_router

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger(__name__)

# ── FastAPI app ──────────────────────────────────────────────────────────────
app = FastAPI(
    title="Reel2Canva API",
    version="1.0.0",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
# Always allow common local dev origins
for default_origin in ("http://localhost:5173", "http://localhost:3000"):
    if default_origin not in origins:
        origins.append(default_origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(run_router)
app.include_router(settings_router)


# ── Startup ──────────────────────────────────────────────────────────────────
@app.on_event("startup")
def on_startup():
    missing = [s for s in ("instagram", "canva") if not settings.get_token(s)]
    if missing:
        logger.warning(
            f"No default access token for: {', '.join(missing)}. "
            "Requests must supply their own."
        )
    logger.info("Reel2Canva API is ready.")


# ── Health check ─────────────────────────────────────────────────────────────
@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": "reel2canva"}
