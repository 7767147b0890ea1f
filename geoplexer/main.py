# geoplexer/main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from geoplexer.api.routes import router as api_router
from geoplexer.core.config import settings

app = FastAPI(
    title="Geoplexer API",
    version="0.1.0",
)

# Allow the map frontend to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Same routes at the root and under /api, depending on how the frontend is proxied
app.include_router(api_router)
app.include_router(api_router, prefix="/api")
