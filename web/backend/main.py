from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from car_audio.core.config import load_config

app = FastAPI(title="car-audio Relay API", version="1.0.0")

# CORS: ALLOWED_ORIGINS env var overrides the config file (handled in load_config)
allowed_origins = load_config().server.allowed_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from web.backend.routers import radio

app.include_router(radio.router, tags=["radio"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
