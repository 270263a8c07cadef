"""Main FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from health_advisor import __version__
from health_advisor.api.endpoints import register_exception_handlers, router
from health_advisor.utils.logging import setup_logging

setup_logging()

app = FastAPI(
    title="Health Advisor",
    description=(
        "A conversational wellness advisor that answers questions using the user's "
        "recent meals, lab results and symptoms as context."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Chat",
            "description": "Send messages and browse conversations. Requires the X-User-Id header.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("health_advisor.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
