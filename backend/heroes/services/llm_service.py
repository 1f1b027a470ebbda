"""文本生成 - OpenAI 兼容 API，返回模型输出的 JSON 文本"""
import json
import re
import logging
from typing import Optional
import httpx
from openai import AsyncOpenAI
from heroes.config import Settings, get_settings

logger = logging.getLogger(__name__)


_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def normalize_json(raw: str) -> str:
    """去掉 markdown 代码块和前后多余文字，返回第一个 JSON 对象的文本（容忍尾随逗号）。"""
    text = raw.replace("```json", "").replace("```", "").strip()
    start = text.find("{")
    if start < 0:
        return text
    text = _TRAILING_COMMA.sub(r"\1", text[start:])
    try:
        _, end = json.JSONDecoder().raw_decode(text)
    except json.JSONDecodeError:
        return text
    return text[:end]


def parse_json_object(raw: str) -> dict:
    """解析模型输出为 dict；空输出、无效 JSON 或非对象都抛 ValueError。"""
    if not raw or not raw.strip():
        raise ValueError("模型返回为空")
    data = json.loads(normalize_json(raw))
    if not isinstance(data, dict):
        raise ValueError(f"期望 JSON 对象，实际为 {type(data).__name__}")
    return data


class LLMClient:
    """OpenAI 兼容的文本生成客户端"""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self._settings = settings or get_settings()
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                base_url=self._settings.llm_api_base.rstrip("/"),
                api_key=self._settings.llm_api_key,
                timeout=httpx.Timeout(self._settings.synthesis_timeout_seconds, connect=10.0),
                max_retries=0,  # 失败由分镜服务降级，不重试
            )
        return self._client

    async def generate_json(self, prompt: str) -> str:
        """发送单条 prompt，要求返回一个 JSON 对象，返回原始文本。"""
        client = self._get_client()
        logger.debug(f"[LLM] 请求 model={self._settings.llm_model}, prompt 长度 {len(prompt)}")
        resp = await client.chat.completions.create(
            model=self._settings.llm_model,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
            temperature=0.8,
        )
        raw = resp.choices[0].message.content or ""
        logger.debug(f"[LLM] 原始响应 (前200字符): {raw[:200]}...")
        return raw
