"""
Gemini 图片生成集成
接口: client.aio.models.generate_content(contents=[参考图..., 文本], image_config=aspect_ratio)
认证: GEMINI_API_KEY
"""
import base64
import logging
from dataclasses import dataclass
from typing import List, Optional

from google import genai
from google.genai import types

from heroes.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptPart:
    """图片请求中的一个片段：文本或内联图片，二选一"""
    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: str = "image/jpeg"

    @classmethod
    def from_text(cls, text: str) -> "PromptPart":
        return cls(text=text)

    @classmethod
    def from_base64(cls, payload: str, mime_type: str = "image/jpeg") -> "PromptPart":
        return cls(data=base64.b64decode(payload), mime_type=mime_type)

    @property
    def is_image(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class GeneratedImage:
    mime_type: str
    data: bytes

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def _to_genai_part(part: PromptPart) -> types.Part:
    if part.is_image:
        return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
    return types.Part.from_text(text=part.text or "")


def extract_first_image(response) -> Optional[GeneratedImage]:
    """取响应中第一个带内联数据的片段，没有则返回 None。"""
    candidates = getattr(response, "candidates", None) or []
    if not candidates or not candidates[0].content or not candidates[0].content.parts:
        return None
    for part in candidates[0].content.parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            return GeneratedImage(mime_type=inline.mime_type or "image/png", data=data)
    return None


class GeminiImageClient:
    """Gemini 图片生成客户端"""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[genai.Client] = None):
        self._settings = settings or get_settings()
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._settings.gemini_api_key:
                raise ValueError("Gemini API 配置不完整，请检查 .env 文件中的 GEMINI_API_KEY")
            self._client = genai.Client(api_key=self._settings.gemini_api_key)
        return self._client

    async def generate_image(self, parts: List[PromptPart], aspect_ratio: str) -> Optional[GeneratedImage]:
        """按顺序发送参考图与文本 prompt，返回第一张生成的图片。"""
        client = self._get_client()
        ref_count = sum(1 for p in parts if p.is_image)
        logger.info(
            f"[Gemini] 开始生成图片，Model: {self._settings.image_model}, 参考图: {ref_count} 张, 比例: {aspect_ratio}"
        )
        response = await client.aio.models.generate_content(
            model=self._settings.image_model,
            contents=[_to_genai_part(p) for p in parts],
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
            ),
        )
        image = extract_first_image(response)
        if image is None:
            logger.warning("[Gemini] ⚠️ 响应中没有图片数据")
        return image
