import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.errors import SafetyCoreError
from app.core.logging import setup_logging

# DB 관련 import (Base / engine)
from app.db.base import Base
from app.db.session import engine

# 모델들을 등록하기 위해 import (Base.metadata에 모델이 올라가도록)
import app.db.models  # noqa: F401

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Safety Incidents API",
    version="1.0.0",
    description="Crowd-reported incidents, proximity search, safety score and community verification.",
)

app.include_router(v1_router, prefix=settings.API_PREFIX)


@app.exception_handler(SafetyCoreError)
async def safety_core_error_handler(request: Request, exc: SafetyCoreError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
def on_startup():
    # 개발 단계 편의용: 테이블 자동 생성 (배포는 alembic)
    Base.metadata.create_all(bind=engine)


# 연결 체크
@app.get("/health")
def health():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
