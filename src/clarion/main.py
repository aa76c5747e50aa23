import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from clarion.api import dca_api, metrics_api
from clarion.config import settings
from clarion.core.logging import logger
from clarion.providers.brk import MetricFetchError

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)


@app.exception_handler(MetricFetchError)
async def metric_fetch_exception_handler(request: Request, exc: MetricFetchError):
    """Upstream data failures abort the request with a generic 502."""
    logger.error(f"{request.method} {request.url.path} upstream failure: {exc}")
    return JSONResponse(status_code=502, content={"detail": "Failed to fetch metric data"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = (time.time() - start_time) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({duration:.2f} ms)")
    return response


app.include_router(metrics_api.router, prefix=settings.API_V1_STR)
app.include_router(dca_api.router, prefix=settings.API_V1_STR)


@app.get("/")
def read_root():
    return {"project": settings.PROJECT_NAME, "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("clarion.main:app", host="0.0.0.0", port=8000, reload=True)
