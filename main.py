import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from starlette.middleware.cors import CORSMiddleware
import routes
from config.cache import close_redis, get_redis, redis_reachable
from config.settings import settings
from core.background import background
from util.enums import Color, Environment
from util.logger import init_logger

logger = logging.getLogger(__name__)


async def _real_ip(request: Request) -> str:
    if settings.TRUST_PROXY:
        fwd = request.headers.get("x-forwarded-for")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    init_logger()
    print(f"{Color.GREEN}Storefront Studio starting ({settings.APP_ENV}){Color.RESET}")

    # Provider keys are checked at first use; only report the gaps here
    missing = settings.missing_integrations()
    if missing:
        logger.warning("config.integrations.unconfigured names=%s", ",".join(missing))

    try:
        redis = await get_redis()
        await FastAPILimiter.init(redis, identifier=_real_ip)
    except Exception:
        logger.exception("startup.redis.failed url=%s", settings.REDIS_URL)
        raise
    print(f"{Color.BLUE}Ready: video, social, generation, assistant, media{Color.RESET}")

    try:
        yield
    finally:
        # In-flight render / generation jobs are cancelled; their records expire by TTL
        await background.shutdown()
        await close_redis()
        print(f"{Color.RED}Storefront Studio stopped{Color.RESET}")


app: FastAPI = FastAPI(title="Storefront Studio", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_credentials=True,  # OAuth state cookies ride along
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


@app.get("/healthz")
async def healthz():
    return {
        "ok": True,
        "redis": await redis_reachable(),
        "backgroundJobs": len(background),
    }


@app.exception_handler(429)
async def ratelimit_handler(request: Request, exc):
    logger.info("ratelimit.hit path=%s", request.url.path)
    return JSONResponse(
        status_code=429,
        content={
            "ok": False,
            "error": "rate_limited",
            "message": f"Too many requests. Try again in {settings.RATE_LIMIT_SECONDS}s.",
        },
        headers={"Retry-After": str(settings.RATE_LIMIT_SECONDS)},
    )


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=reload)
