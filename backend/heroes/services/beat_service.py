"""分镜生成：根据已有页面历史与故事设定，调用 LLM 生成下一页的叙事内容"""
import asyncio
import logging
import random
import time
from typing import List, Optional, Protocol

from heroes.constants.comic_options import CUSTOM_GENRE, get_language_name
from heroes.models.comic import Beat, ComicPage, Persona, StoryConfig
from heroes.services.llm_service import parse_json_object
from heroes.utils.logger_utils import log_generation_result

logger = logging.getLogger(__name__)

FOCUS_VALUES = ("hero", "friend", "other")
FOCUS_ALIASES = {"co-star": "friend", "costar": "friend", "co_star": "friend"}
DEFAULT_CHOICES = ["A", "B"]
FRIEND_FOCUS_THRESHOLD = 0.4  # 随机数大于该值时要求本页聚焦配角

GUARDRAILS = """
NEGATIVE CONSTRAINTS:
1. UNLESS GENRE IS "Dark Sci-Fi" OR "Superhero Action": DO NOT use technical jargon like "Quantum" or "Singularity".
2. IF GENRE IS "Teen Drama": Stakes must be SOCIAL or PERSONAL.
"""


class TextGenerator(Protocol):
    async def generate_json(self, prompt: str) -> str: ...


def fallback_beat(page_num: int) -> Beat:
    """生成失败时的降级分镜。"""
    return Beat(caption="...", dialogue="", scene=f"Scene {page_num}", focus_char="hero", choices=[])


def build_history_text(history: List[ComicPage]) -> str:
    lines = []
    for p in history:
        beat = p.narrative or Beat()
        line = (
            f'[Page {p.page_index}] [Focus: {beat.focus_char}] (Caption: "{beat.caption}") '
            f'(Dialogue: "{beat.dialogue}") (Scene: {beat.scene})'
        )
        if p.resolved_choice:
            line += f' -> USER CHOICE: "{p.resolved_choice}"'
        lines.append(line)
    return "\n".join(lines)


def build_core_driver(config: StoryConfig) -> str:
    if config.genre == CUSTOM_GENRE:
        premise = config.custom_premise.strip() or "A totally unique, unpredictable adventure"
        return f"STORY PREMISE: {premise}."
    return f"GENRE: {config.genre}. TONE: {config.tone}."


def build_friend_directive(friend_active: bool, last_focus: str, rng: random.Random) -> str:
    """配角在场且上一页没有聚焦配角时，按概率要求本页聚焦配角。"""
    if not friend_active:
        return "Not yet introduced."
    directive = "ACTIVE and PRESENT."
    if last_focus != "friend" and rng.random() > FRIEND_FOCUS_THRESHOLD:
        directive += " MANDATORY: FOCUS ON THE CO-STAR FOR THIS PANEL."
    return directive


def build_beat_prompt(
    history: List[ComicPage],
    page_num: int,
    max_story_pages: int,
    is_decision_page: bool,
    config: StoryConfig,
    friend_active: bool,
    rng: random.Random,
) -> str:
    lang_name = get_language_name(config.language)
    core_driver = build_core_driver(config)

    last_beat = history[-1].narrative if history else None
    last_focus = last_beat.focus_char if last_beat else "none"
    friend_directive = build_friend_directive(friend_active, last_focus, rng)

    instruction = f"Continue the story in {lang_name.upper()}. {core_driver} {GUARDRAILS}"
    if config.rich_mode:
        instruction += " RICH MODE ENABLED: Detailed narration, elaborate on mood and inner thoughts."

    if page_num == max_story_pages:
        instruction += " FINAL PAGE. Wrap up this chapter and end with 'TO BE CONTINUED...'."
    elif is_decision_page:
        instruction += (
            " End with a PSYCHOLOGICAL choice: the hero faces a dilemma with exactly TWO options."
        )
    else:
        instruction += " Keep the story open so it can continue on the next page."

    cap_limit = "max 35 words" if config.rich_mode else "max 15 words"
    dia_limit = "max 30 words" if config.rich_mode else "max 12 words"
    choices_field = (
        '"choices": ["Option A", "Option B"] (EXACTLY two short labels)'
        if is_decision_page
        else '"choices": [] (always empty on this page)'
    )
    history_text = build_history_text(history)

    return f"""
You are writing a comic book script. PAGE {page_num} of {max_story_pages}.
TARGET LANGUAGE: {lang_name}.
{core_driver}
CO-STAR: {friend_directive}

INSTRUCTIONS:
{instruction}

PREVIOUS PANELS:
{history_text if history_text else "Start the adventure."}

OUTPUT STRICT JSON ONLY:
{{
  "caption": "Narrator text in {lang_name}. ({cap_limit}).",
  "dialogue": "Speech in {lang_name}. ({dia_limit}).",
  "scene": "Visual description in English (always English, whatever the target language).",
  "focus_char": "hero" OR "friend" OR "other",
  {choices_field}
}}
"""


def _normalize_focus(value) -> str:
    focus = str(value or "").strip().lower()
    focus = FOCUS_ALIASES.get(focus, focus)
    return focus if focus in FOCUS_VALUES else "other"


def _normalize_choices(value, is_decision_page: bool) -> List[str]:
    if not is_decision_page:
        return []
    raw = value if isinstance(value, list) else []
    choices = [str(c).strip() for c in raw if str(c).strip()]
    # 决策页必须恰好两个选项：多余截断，不足用默认标签补齐
    return (choices + DEFAULT_CHOICES[len(choices):])[:2]


def parse_beat(raw: str, is_decision_page: bool) -> Beat:
    """把模型输出解析为 Beat；JSON 无效、缺少画面描述或缺少文字时抛出 ValueError。"""
    data = parse_json_object(raw)
    caption = str(data.get("caption") or "").strip()
    dialogue = str(data.get("dialogue") or "").strip()
    scene = str(data.get("scene") or "").strip()
    if not scene:
        raise ValueError("分镜缺少 scene")
    if not caption and not dialogue:
        raise ValueError("分镜缺少 caption 和 dialogue")
    return Beat(
        caption=caption,
        dialogue=dialogue,
        scene=scene,
        focus_char=_normalize_focus(data.get("focus_char")),
        choices=_normalize_choices(data.get("choices"), is_decision_page),
    )


class BeatSynthesizer:
    """把历史页面 + 故事设定变成下一页分镜，任何失败都降级为占位分镜，不向外抛异常"""

    def __init__(
        self,
        llm: TextGenerator,
        max_story_pages: int,
        timeout: float = 120.0,
        rng: Optional[random.Random] = None,
    ):
        self._llm = llm
        self._max_story_pages = max_story_pages
        self._timeout = timeout
        self._rng = rng or random.Random()

    async def synthesize(
        self,
        history: List[ComicPage],
        page_num: int,
        is_decision_page: bool,
        config: StoryConfig,
        friend: Optional[Persona] = None,
    ) -> Beat:
        start_time = time.time()
        context = sorted(
            (p for p in history if p.type == "story" and p.narrative is not None and p.page_index < page_num),
            key=lambda p: p.page_index,
        )
        try:
            prompt = build_beat_prompt(
                context,
                page_num,
                self._max_story_pages,
                is_decision_page,
                config,
                friend_active=friend is not None,
                rng=self._rng,
            )
            logger.info(f"[分镜] 生成第 {page_num} 页，上下文 {len(context)} 页，决策页: {is_decision_page}")
            raw = await asyncio.wait_for(self._llm.generate_json(prompt), timeout=self._timeout)
            beat = parse_beat(raw, is_decision_page)
            log_generation_result(logger, "分镜生成", True, time.time() - start_time, target=f"第 {page_num} 页")
            return beat
        except Exception as e:
            log_generation_result(
                logger, "分镜生成", False, time.time() - start_time, error=f"{type(e).__name__}: {e}",
                target=f"第 {page_num} 页",
            )
            logger.error(f"[分镜] ❌ 第 {page_num} 页分镜生成失败，使用占位内容", exc_info=True)
            return fallback_beat(page_num)
