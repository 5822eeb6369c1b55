"""
Adaptive Assessment Engine - FastAPI Application with Request Logging
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import time

from .config import settings
from .api.routes.quiz import router as quiz_router
from .services.quiz_engine import get_quiz_engine
from .services.quiz_telemetry import get_quiz_telemetry
from .utils.logging import (
    Colors,
    configure_package_logging,
    generate_request_id,
    log_error,
    log_request_end,
    log_startup,
)

configure_package_logging(settings.LOG_LEVEL)


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Question banks, adaptive quizzes, answer scoring and proctoring risk",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


# ============================================================================
# Request Logging Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start = time.time()
    request_id = generate_request_id()
    method = request.method
    path = request.url.path

    try:
        response = await call_next(request)
    except Exception as e:
        log_error("RequestError", str(e), request_id)
        raise

    duration_ms = int((time.time() - start) * 1000)
    if path not in ["/health", "/favicon.ico"]:
        log_request_end(request_id, method, path, response.status_code, duration_ms)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(quiz_router)


@app.on_event("startup")
async def startup_event():
    """Log service startup and configuration."""
    log_startup(settings.APP_NAME, settings.PORT)

    print(f"{Colors.DIM}Configuration:{Colors.RESET}")
    oracle = settings.SCORING_ORACLE_MODEL if settings.SCORING_ORACLE_API_KEY else "disabled (lexical scoring)"
    print(f"  Scoring Oracle: {Colors.CYAN}{oracle}{Colors.RESET}")
    persistence = settings.REDIS_URL if settings.SNAPSHOT_PERSISTENCE else "in-memory only"
    print(f"  Snapshots: {Colors.CYAN}{persistence}{Colors.RESET}")
    print(f"  Debug Mode: {Colors.CYAN}{settings.DEBUG}{Colors.RESET}")
    print()


@app.on_event("shutdown")
async def shutdown_event():
    """Drain pending snapshot writes."""
    engine = get_quiz_engine()
    if engine.write_queue is not None:
        await engine.write_queue.close()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    engine = get_quiz_engine()
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "persistence": engine.write_queue.stats() if engine.write_queue is not None else None,
        "metrics": get_quiz_telemetry().get_metrics()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("assessment_engine.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
