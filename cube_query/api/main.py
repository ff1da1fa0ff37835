"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cube_query.api.routers import query

app = FastAPI(
    title="Cube Query Engine",
    version="0.1.0",
    description="Query normalization, SQL preview and visual-editor capability checks for Cube",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query.router, prefix="/query", tags=["Query"])


@app.get("/health")
def health():
    return {"status": "ok"}
