from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from matrix_optimizer import __version__
from matrix_optimizer.config.settings import get_settings
from matrix_optimizer.api.optimizer_api import router as optimizer_router
from matrix_optimizer.api.state import optimizer

app = FastAPI(
    title="Price Matrix Optimizer API",
    description="Tiered markup optimization from parts sales exports",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(optimizer_router)


@app.get("/")
async def root():
    return {"status": "online", "message": "Price Matrix Optimizer API Active"}


@app.get("/system/status")
async def get_status():
    settings = get_settings()
    return {
        "engine_active": True,
        "version": __version__,
        "matrix_tiers": len(optimizer.matrix),
        "settings": settings.as_dict(),
    }
