"""页面编排：决定生成哪些页、按什么顺序、用什么上下文，防止同一页重复生成，选择后续写"""
import asyncio
import functools
import logging
from typing import Awaitable, Callable, Coroutine, List, Optional, Set

from heroes.config import Settings, get_settings
from heroes.models.comic import Beat, ComicLayout, ComicPage, PageType, Persona, SessionSnapshot, StoryConfig
from heroes.services.beat_service import BeatSynthesizer
from heroes.services.illustration_service import IllustrationSynthesizer
from heroes.services.image_service import GeminiImageClient
from heroes.services.llm_service import LLMClient
from heroes.utils.session import validate_api_key
from heroes.utils.store import PageStore

logger = logging.getLogger(__name__)

SessionValidator = Callable[[], Awaitable[bool]]

BACK_COVER_BEAT = Beat(scene="Teaser image", choices=[], focus_char="other")


class ChoiceAlreadyResolvedError(ValueError):
    """决策页已经选择过，不允许覆盖"""


def page_id_for(page_index: int) -> str:
    return "cover" if page_index == 0 else f"page-{page_index}"


class PageOrchestrator:
    """单会话漫画生成编排器。

    每页状态：未请求 -> 生成中 -> 完成。生成失败被分镜/插画服务吸收为降级内容，
    编排器本身不重试。reset() 递增会话 epoch，旧 epoch 的生成结果一律丢弃。
    """

    def __init__(
        self,
        beat_synthesizer: BeatSynthesizer,
        illustration_synthesizer: IllustrationSynthesizer,
        layout: ComicLayout,
        session_validator: Optional[SessionValidator] = None,
        store: Optional[PageStore] = None,
        launch_delay: float = 1.1,
    ):
        self._beat = beat_synthesizer
        self._illustration = illustration_synthesizer
        self.layout = layout
        self._session_validator = session_validator
        self.store = store or PageStore()
        self._launch_delay = launch_delay

        self._epoch = 0
        self._in_flight: Set[int] = set()
        self._tasks: Set[asyncio.Task] = set()

        self.hero: Optional[Persona] = None
        self.friend: Optional[Persona] = None
        self.config = StoryConfig()
        self.is_started = False
        self.current_sheet_index = 0

    # ---------- 会话设置 ----------
    @property
    def in_flight(self) -> frozenset:
        return frozenset(self._in_flight)

    @property
    def epoch(self) -> int:
        return self._epoch

    def set_hero(self, persona: Optional[Persona]) -> None:
        self.hero = persona

    def set_friend(self, persona: Optional[Persona]) -> None:
        self.friend = persona

    def configure(self, config: StoryConfig) -> None:
        """设置故事参数；故事开始生成后只读。"""
        if len(self.store):
            raise ValueError("故事已开始生成，无法修改设定，请先重置")
        self.config = config
        logger.info(f"[编排] 故事设定: genre={config.genre}, language={config.language}, rich={config.rich_mode}")

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            is_started=self.is_started,
            current_sheet_index=self.current_sheet_index,
            config=self.config,
            has_hero=self.hero is not None,
            has_friend=self.friend is not None,
            pages=self.store.all_pages(),
        )

    # ---------- 后台任务 ----------
    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[编排] ❌ 后台任务 {task.get_name()} 异常: {type(exc).__name__}: {exc}", exc_info=exc)

    async def wait_idle(self) -> None:
        """等待所有后台生成任务结束（测试与关闭时使用）。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _is_stale(self, epoch: int, page_index: int) -> bool:
        if epoch != self._epoch:
            logger.info(f"[编排] 会话已重置，丢弃第 {page_index} 页的过期结果")
            return True
        return False

    def _new_session(self) -> int:
        """作废当前会话：递增 epoch、取消后台任务、清空历史与生成中集合。"""
        self._epoch += 1
        for task in list(self._tasks):
            task.cancel()
        # 换新集合而不是 clear()，旧批次的 discard 不会影响新会话
        self._in_flight = set()
        self.store.clear()
        self.is_started = False
        self.current_sheet_index = 0
        return self._epoch

    # ---------- 生成 ----------
    async def generate_single_page(self, page_index: int, page_type: PageType, epoch: Optional[int] = None) -> None:
        """先生成分镜并立即写入（前端先看到文字），再生成插画，最后清除 loading。"""
        epoch = self._epoch if epoch is None else epoch
        page_id = page_id_for(page_index)
        is_decision = page_type == "story" and self.layout.is_decision_page(page_index)
        hero, friend, config = self.hero, self.friend, self.config

        if page_type == "story":
            beat = await self._beat.synthesize(
                self.store.pages_before(page_index),
                page_index,
                is_decision,
                config,
                friend=friend,
            )
        elif page_type == "back_cover":
            beat = BACK_COVER_BEAT
        else:
            beat = Beat()

        if self._is_stale(epoch, page_index):
            return
        self.store.update(page_id, narrative=beat, choices=list(beat.choices), is_decision_page=is_decision)

        image_url = await self._illustration.synthesize(beat, page_type, config.genre, hero=hero, friend=friend)
        if self._is_stale(epoch, page_index):
            return
        self.store.update(page_id, image_url=image_url, is_loading=False)
        logger.info(f"[编排] ✅ 第 {page_index} 页完成 ({page_type}), 有图: {bool(image_url)}")

    async def generate_batch(self, start_index: int, count: int) -> List[int]:
        """生成 [start_index, start_index + count) 内尚未生成的页，按页码顺序逐页生成。

        页码超过 total_pages 的部分被截掉；已在生成中或已存在的页跳过。
        返回本批次实际负责生成的页码。
        """
        epoch = self._epoch
        in_flight = self._in_flight
        candidates = range(start_index, start_index + count)
        pages_to_gen = [
            p for p in candidates
            if 0 <= p <= self.layout.total_pages and p not in in_flight and not self.store.contains(p)
        ]
        if not pages_to_gen:
            logger.debug(f"[编排] 批次 start={start_index}, count={count} 无需生成")
            return []

        in_flight.update(pages_to_gen)
        self.store.append_many([
            ComicPage(id=page_id_for(p), page_index=p, type=self.layout.page_type(p), is_loading=True)
            for p in pages_to_gen
        ])
        logger.info(f"[编排] 开始批次生成: {pages_to_gen}")

        # 逐页顺序生成：每页分镜都能看到上一页已完成的分镜
        for page_index in pages_to_gen:
            if epoch != self._epoch:
                logger.info(f"[编排] 会话已重置，批次 {pages_to_gen} 在第 {page_index} 页停止")
                break
            try:
                await self.generate_single_page(page_index, self.layout.page_type(page_index), epoch)
            except Exception as e:
                logger.error(f"[编排] ❌ 第 {page_index} 页生成异常: {type(e).__name__}: {e}", exc_info=True)
            finally:
                in_flight.discard(page_index)

        logger.info(f"[编排] ✅ 批次 {pages_to_gen} 结束")
        return pages_to_gen

    async def launch_story(self) -> bool:
        """开始故事：先单独生成封面，过场动画结束后再生成开头几页。"""
        if self._session_validator is not None and not await self._session_validator():
            logger.warning("[编排] ⚠️ 会话校验未通过，不开始生成")
            return False
        if self.hero is None:
            raise ValueError("请先上传主角照片")

        epoch = self._new_session()
        in_flight = self._in_flight
        self.store.append(ComicPage(id=page_id_for(0), page_index=0, type="cover", is_loading=True))
        in_flight.add(0)
        logger.info(f"[编排] 开始新故事 (epoch={epoch})，先生成封面")

        self._spawn(self._generate_cover(epoch, in_flight), name=f"cover-{epoch}")
        self._spawn(self._start_after_transition(epoch), name=f"launch-{epoch}")
        return True

    async def _generate_cover(self, epoch: int, in_flight: Set[int]) -> None:
        try:
            await self.generate_single_page(0, "cover", epoch)
        finally:
            in_flight.discard(0)

    async def _start_after_transition(self, epoch: int) -> None:
        await asyncio.sleep(self._launch_delay)
        if epoch != self._epoch:
            return
        self.is_started = True
        await self.generate_batch(1, self.layout.initial_pages)

    def handle_choice(self, page_index: int, choice: str) -> bool:
        """记录决策页的选择（只允许一次），并从当前最大页码之后续写一批。

        返回是否启动了新的续写批次。
        """
        choice = (choice or "").strip()
        if not choice:
            raise ValueError("选项不能为空")
        page = self.store.get(page_index)
        if page is None:
            raise ValueError(f"第 {page_index} 页不存在")
        if page.resolved_choice is not None:
            raise ChoiceAlreadyResolvedError(f"第 {page_index} 页已选择 \"{page.resolved_choice}\"")

        self.store.update(page.id, resolved_choice=choice)
        logger.info(f"[编排] 第 {page_index} 页选择: {choice}")

        max_page = self.store.max_page_index()
        if max_page + 1 > self.layout.total_pages:
            logger.info(f"[编排] 已到最后一页 ({max_page})，不再续写")
            return False
        self._spawn(
            self.generate_batch(max_page + 1, self.layout.batch_size),
            name=f"batch-{max_page + 1}-{self._epoch}",
        )
        return True

    # ---------- 翻页 ----------
    def open_book(self) -> int:
        self.current_sheet_index = 1
        return self.current_sheet_index

    def turn_to_sheet(self, sheet_index: int) -> int:
        """点击某一页：往回翻总是允许；往前翻只在当前页已有插画时允许。"""
        if not self.is_started:
            return self.current_sheet_index
        if sheet_index < self.current_sheet_index:
            self.current_sheet_index = sheet_index
        elif sheet_index == self.current_sheet_index:
            page = self.store.get(sheet_index)
            if page is not None and page.image_url:
                self.current_sheet_index += 1
        return self.current_sheet_index

    def reset(self) -> None:
        """清空整个会话（历史、生成中集合、角色、翻页位置），生成中也可以安全调用。"""
        epoch = self._new_session()
        self.hero = None
        self.friend = None
        logger.info(f"[编排] 会话已重置 (epoch={epoch})")


def build_orchestrator(settings: Optional[Settings] = None) -> PageOrchestrator:
    """按配置组装真实的 LLM / Gemini 客户端与编排器。"""
    settings = settings or get_settings()
    layout = ComicLayout.from_settings(settings)
    beat = BeatSynthesizer(
        LLMClient(settings),
        max_story_pages=layout.max_story_pages,
        timeout=settings.synthesis_timeout_seconds,
    )
    illustration = IllustrationSynthesizer(
        GeminiImageClient(settings),
        aspect_ratio=settings.image_aspect_ratio,
        timeout=settings.synthesis_timeout_seconds,
    )
    return PageOrchestrator(
        beat,
        illustration,
        layout,
        session_validator=functools.partial(validate_api_key, settings),
        launch_delay=settings.launch_transition_delay,
    )
