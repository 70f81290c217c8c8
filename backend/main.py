import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from app.api.routes_conversation import router as conversation_router
from app.api.routes_messages import router as messages_router
from app.core.config_loader import settings
from app.core.errors import AgentTransportError, StorageError
from app.core.logger import logger


app = FastAPI(
    title="Workout Agent Server",
    description="Relays chat messages between the workout app and a tool-using AI agent",
    version="1.0.0"
)

# -------------------------------------------------------------
# CORS
# -------------------------------------------------------------
ALLOW_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
ALLOW_HEADERS = ["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=ALLOW_METHODS,
    allow_headers=["*"],
)


@app.middleware("http")
async def short_circuit_options(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(
            status_code=204,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": ", ".join(ALLOW_METHODS),
                "Access-Control-Allow-Headers": ", ".join(ALLOW_HEADERS),
            },
        )
    return await call_next(request)


# -------------------------------------------------------------
# ERROR HANDLERS
# -------------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc.message} ({exc.details})")
    return JSONResponse(status_code=500, content={"detail": "Storage failure"})


@app.exception_handler(AgentTransportError)
async def agent_transport_error_handler(request: Request, exc: AgentTransportError):
    logger.error(f"Agent failure on {request.method} {request.url.path}: {exc.message} ({exc.details})")
    return JSONResponse(
        status_code=500,
        content={"detail": "Failed to process message", "error": exc.message},
    )


# -------------------------------------------------------------
# ROUTES
# -------------------------------------------------------------
app.include_router(conversation_router)
app.include_router(messages_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Workout agent server is running",
        "env": settings.environment
    }


@app.get("/health")
def health_check():
    return {"status": "ok", "timestamp": int(time.time() * 1000)}


# -------------------------------------------------------------
# RUN LOCAL
# -------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.server_host,
        port=settings.server_port,
    )
