import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobswipe.core import config
from jobswipe.core.logging_config import setup_logging

# ✅ Import All API Routes
from jobswipe.api.routes import auth, accounts, jobs, swipes, matches, payments, billing, health

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="JobSwipe API")

# ✅ CORS: only the configured client origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.on_event("startup")
def apply_migrations():
    if config.RUN_MIGRATIONS:
        from jobswipe.db.migrate import run_migrations
        run_migrations()


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(auth.router)
app.include_router(accounts.router)
app.include_router(jobs.router)
app.include_router(swipes.router)
app.include_router(matches.router)
app.include_router(payments.router)
app.include_router(billing.router)
app.include_router(health.router)


# ============================================
# ✅ ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "JobSwipe API running"}
