"""应用配置 - 从环境变量读取"""
from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache

# 支持从项目根目录的 .env 加载（当在 backend/ 下启动时）
_root_env = Path(__file__).resolve().parent.parent.parent / ".env"
_env_file = _root_env if _root_env.exists() else ".env"


class Settings(BaseSettings):
    # 文本生成 (OpenAI 兼容，默认走 Gemini 的兼容端点)
    llm_api_base: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    llm_api_key: str = ""
    llm_model: str = "gemini-2.5-flash"

    # 图片生成 (Gemini)
    gemini_api_key: str = ""
    image_model: str = "gemini-3-pro-image-preview"
    image_aspect_ratio: str = "2:3"

    # 后端
    backend_host: str = "0.0.0.0"
    backend_port: int = 8100
    api_cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # 编排
    synthesis_timeout_seconds: float = 120.0
    launch_transition_delay: float = 1.1  # 等待前端翻书动画

    # 页码布局：0 为封面，back_cover_page 为封底，其余为故事页
    max_story_pages: int = 10
    back_cover_page: int = 11
    total_pages: int = 11
    initial_pages: int = 2
    batch_size: int = 6
    decision_pages: List[int] = [3]

    class Config:
        env_file = _env_file
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
