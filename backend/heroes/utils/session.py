"""会话校验：开始生成前确认生成服务的 API Key 已配置"""
import logging
from typing import Optional

from heroes.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def validate_api_key(settings: Optional[Settings] = None) -> bool:
    """API Key 由部署环境（.env / 托管平台）提供，这里只检查是否已配置。"""
    settings = settings or get_settings()
    missing = []
    if not settings.llm_api_key:
        missing.append("LLM_API_KEY")
    if not settings.gemini_api_key:
        missing.append("GEMINI_API_KEY")
    if missing:
        logger.warning(f"[会话] ⚠️ 缺少 API Key 配置: {', '.join(missing)}")
        return False
    return True
