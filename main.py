from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

import models  # noqa: F401  registers tables on Base.metadata
from database import Base, engine, settings
from api import catalogues, players, pools, rounds

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables if they do not exist yet
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Elimination Pool API",
    description="Operator-run last-man-standing pool engine",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(catalogues.router)
app.include_router(players.router)
app.include_router(pools.router)
app.include_router(rounds.router)


@app.get("/")
def root():
    return {"message": "Elimination Pool API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
