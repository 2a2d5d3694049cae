import time
from fastapi import FastAPI, Request
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from routers.router import router
from core.lifespan import lifespan
from core.config import settings
from core.logger import logger
from core.rate_limiter import limiter

# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Slack slash command front end for asynchronous image generation.

    ## Endpoints

    **POST /slack/commands** - Slash command target (signed by Slack)

    `/diffusion [x<N> ]<prompt>` queues a job generating N images (default 1,
    capped at MAX_IMAGE_COUNT). A status message in the channel is edited as
    the job moves through queueing, generation and upload.

    **GET /slack/oauth/redirect** - OAuth redirect storing the user's token

    **GET /health** - Readiness of the queue, storage and chat clients
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request/Response logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    log_data = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "duration_ms": int(duration * 1000),
        "client": request.client.host if request.client else "unknown"
    }

    # Only log non-health-check requests
    if request.url.path != "/health":
        logger.info(f"Request: {log_data}")

    return response

# Include routers
app.include_router(router)
