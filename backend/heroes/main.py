import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from heroes.config import get_settings
from heroes.routers import comic

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动和关闭时的生命周期管理"""
    logger.info("========== 应用启动 ==========")
    logger.info(
        f"文本模型: {settings.llm_model}, 图片模型: {settings.image_model}, "
        f"故事页数: {settings.max_story_pages}, 决策页: {settings.decision_pages}"
    )
    yield
    # 关闭时：取消未完成的生成任务并丢弃结果
    comic.get_orchestrator().reset()
    logger.info("========== 应用关闭 ==========")


app = FastAPI(
    title="Infinite Heroes 漫画 API",
    version="0.1.0",
    lifespan=lifespan,
)
settings = get_settings()
allowed_origins = []
for origin in settings.api_cors_origins.split(","):
    normalized = origin.strip().rstrip("/")
    if normalized:
        allowed_origins.append(normalized)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(comic.router)


@app.get("/")
def root():
    return {"message": "Infinite Heroes 漫画 API", "docs": "/docs"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "llm_configured": bool(settings.llm_api_key),
        "image_configured": bool(settings.gemini_api_key),
    }
