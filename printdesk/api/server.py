from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from printdesk.api.routes.subscription import router as subscription_router

app = FastAPI(
    title="PrintDesk API",
    description="Subscription validation and access gating",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(subscription_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "PrintDesk API", "version": "1.0.0"}
