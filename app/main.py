from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.logging import configure_logging
from app.api.execute import router as api_router
from orchestration.errors import ConfigurationError, GenerationFailure, UnknownAgent

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield

app = FastAPI(
    title=settings.service_name,
    lifespan=lifespan
)

# CORS middleware - allow frontend to call API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/v1")


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    status_code = 404 if isinstance(exc, UnknownAgent) else 400
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


@app.exception_handler(GenerationFailure)
async def generation_failure_handler(request: Request, exc: GenerationFailure):
    return JSONResponse(
        status_code=502,
        content={"error": type(exc).__name__, "kind": exc.kind.value, "detail": str(exc)},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
