# FILE: ipd_core/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ipd_core import __version__
from ipd_core.core.config import settings
from ipd_core.core.logging_config import configure_logging
from ipd_core.api.exception_handlers import register_exception_handlers
from ipd_core.api.router import api_router

configure_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


# Health
@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} running", "version": __version__}
