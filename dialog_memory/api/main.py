"""Main FastAPI application and server startup."""

from fastapi import FastAPI
import uvicorn

from .schemas import HealthResponse
from .chat import router as chat_router
from . import chat


app = FastAPI(
    title="Dialog Memory API",
    description="Conversational agent with flash and long-term memory",
    version="0.1.0",
)

app.include_router(chat_router, prefix="/api", tags=["chat"])


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    chat.reset_dependencies()


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        components={
            "settings": chat._settings is not None,
            "store": chat._kv_store is not None,
            "pipeline": chat._pipeline is not None,
        },
    )


def run():
    """Run the development server."""
    uvicorn.run("dialog_memory.api.main:app", host="0.0.0.0", port=8000, reload=True)


if __name__ == "__main__":
    run()
