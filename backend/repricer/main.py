from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from repricer.core.config import settings
from repricer.core.logging import configure_logging
from repricer.api.v1 import api_v1
from repricer.db.session import dispose_engine
from repricer.core.celery_app import celery_app  # noqa: F401  shared tasks bind to this app for .delay()

configure_logging()

app = FastAPI(title=settings.PROJECT_NAME)

# 前端白名单（逗号分隔）, e.g. BACKEND_CORS_ORIGINS=http://localhost:5173,https://app.local.test:5173
origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Origin 校验（仅对改数据方法）; requests without Origin (curl, jobs) pass
TRUSTED = set(origins)

@app.middleware("http")
async def origin_check(request: Request, call_next):
    if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        origin = request.headers.get("origin")
        if origin and origin not in TRUSTED:
            return JSONResponse(status_code=403, content={"detail": "Bad Origin"})
    return await call_next(request)


app.include_router(api_v1, prefix=settings.API_PREFIX)


@app.on_event("shutdown")
def _shutdown() -> None:
    dispose_engine()


# 根路径探活（Docker 健康检查）
@app.get("/")
def root():
    return {
        "app": settings.PROJECT_NAME,
        "env": settings.ENVIRONMENT,
        "ok": True
    }
