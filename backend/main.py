"""
커머스 결제 서비스 - FastAPI 메인 애플리케이션
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import settings
from domain.exceptions import DomainError, UnsupportedPaymentMethodError
from infrastructure.persistence.database import init_db
from api.routers import health, click_callback, click_payment, payment, order

# 로깅 설정
os.makedirs("./logs", exist_ok=True)
logger.add(
    settings.LOG_FILE,
    rotation="10 MB",
    retention="30 days",
    level=settings.LOG_LEVEL
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 수명 주기 관리"""
    logger.info("서비스 시작...")
    await init_db()
    logger.info("데이터베이스 초기화 완료")

    yield

    logger.info("서비스 종료...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="주문 결제 서비스 - Click 콜백 / 인보이스 / 카드 토큰 결제",
    lifespan=lifespan
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.warning(f"{request.method} {request.url.path} 실패: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc)})


@app.exception_handler(UnsupportedPaymentMethodError)
async def unsupported_method_handler(request: Request, exc: UnsupportedPaymentMethodError):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


app.include_router(health.router)
app.include_router(click_callback.router)
app.include_router(click_payment.router)
app.include_router(payment.router)
app.include_router(order.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
