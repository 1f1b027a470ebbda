"""插画生成：根据分镜与参考角色构建图片请求，失败时返回空字符串"""
import asyncio
import logging
import time
from typing import List, Optional, Protocol

from heroes.models.comic import Beat, PageType, Persona
from heroes.services.image_service import GeneratedImage, PromptPart
from heroes.utils.logger_utils import format_file_size, log_generation_result

logger = logging.getLogger(__name__)

DEFAULT_ASPECT_RATIO = "2:3"  # 整本书统一竖版页面


class ImageGenerator(Protocol):
    async def generate_image(self, parts: List[PromptPart], aspect_ratio: str) -> Optional[GeneratedImage]: ...


def build_reference_parts(hero: Optional[Persona], friend: Optional[Persona]) -> List[PromptPart]:
    """主角、配角照片作为带标签的参考图，只要设置了就每次都带上。"""
    parts: List[PromptPart] = []
    if hero and hero.base64:
        parts.append(PromptPart.from_text("REFERENCE [HERO]:"))
        parts.append(PromptPart.from_base64(hero.base64, hero.mime_type))
    if friend and friend.base64:
        parts.append(PromptPart.from_text("REFERENCE [CO-STAR]:"))
        parts.append(PromptPart.from_base64(friend.base64, friend.mime_type))
    return parts


def build_image_prompt(beat: Beat, page_type: PageType, genre: str) -> str:
    prompt = f"STYLE: {genre} comic book art. "
    if page_type == "cover":
        prompt += "Comic Book Cover. Main visual: [HERO] (REFERENCE)."
    elif page_type == "back_cover":
        prompt += "Comic Back Cover. Dramatic teaser."
    else:
        prompt += f"Vertical panel. SCENE: {beat.scene}. Use REFERENCES for likeness."
        if beat.caption:
            prompt += f' CAPTION: "{beat.caption}"'
    return prompt


def build_image_parts(
    beat: Beat,
    page_type: PageType,
    genre: str,
    hero: Optional[Persona],
    friend: Optional[Persona],
) -> List[PromptPart]:
    parts = build_reference_parts(hero, friend)
    parts.append(PromptPart.from_text(build_image_prompt(beat, page_type, genre)))
    return parts


class IllustrationSynthesizer:
    """分镜 + 参考角色 -> 插画 data URL"""

    def __init__(
        self,
        image_client: ImageGenerator,
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        timeout: float = 120.0,
    ):
        self._image_client = image_client
        self._aspect_ratio = aspect_ratio
        self._timeout = timeout

    async def synthesize(
        self,
        beat: Beat,
        page_type: PageType,
        genre: str,
        hero: Optional[Persona] = None,
        friend: Optional[Persona] = None,
    ) -> str:
        start_time = time.time()
        try:
            parts = build_image_parts(beat, page_type, genre, hero, friend)
            logger.info(f"[插画] 生成 {page_type} 插画，Prompt (前100字符): {parts[-1].text[:100]}...")
            image = await asyncio.wait_for(
                self._image_client.generate_image(parts, self._aspect_ratio),
                timeout=self._timeout,
            )
            if image is None:
                raise ValueError("图片接口未返回图片数据")
            log_generation_result(
                logger, "插画生成", True, time.time() - start_time, format_file_size(len(image.data)),
                target=page_type,
            )
            return image.to_data_url()
        except Exception as e:
            log_generation_result(
                logger, "插画生成", False, time.time() - start_time, error=f"{type(e).__name__}: {e}",
                target=page_type,
            )
            logger.error(f"[插画] ❌ {page_type} 插画生成失败，返回空图片", exc_info=True)
            return ""
