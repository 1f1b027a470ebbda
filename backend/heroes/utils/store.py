"""漫画页存储：按页码索引的内存记录，单一数据源 + 订阅通知（不做持久化）"""
import logging
import threading
from typing import Callable, Dict, List, Literal, Optional

from heroes.models.comic import ComicPage

logger = logging.getLogger(__name__)

StoreEvent = Literal["append", "update", "clear"]
StoreListener = Callable[[StoreEvent, List[ComicPage]], None]


class PageStore:
    """按 page_index 排序的页面历史。

    - 每个页码最多一条记录，更新是合并字段后整体替换，不会删除页面
    - 读取返回快照，写入方追加新页时读取方可以安全遍历
    - 每次写入后通知订阅者（前端推送、测试观察等）
    """

    def __init__(self) -> None:
        self._pages: Dict[int, ComicPage] = {}
        self._ids: Dict[str, int] = {}
        self._listeners: List[StoreListener] = []
        self._lock = threading.Lock()

    def append(self, page: ComicPage) -> bool:
        """追加一页；页码已存在则忽略，返回是否写入。"""
        return bool(self.append_many([page]))

    def append_many(self, pages: List[ComicPage]) -> List[ComicPage]:
        """一次性追加多页（只通知一次），已存在的页码跳过。"""
        added: List[ComicPage] = []
        with self._lock:
            for page in pages:
                if page.page_index in self._pages:
                    logger.debug(f"[存储] 页码 {page.page_index} 已存在，跳过追加")
                    continue
                self._pages[page.page_index] = page
                self._ids[page.id] = page.page_index
                added.append(page)
        if added:
            logger.debug(f"[存储] 追加 {len(added)} 页: {[p.page_index for p in added]}")
            self._emit("append", added)
        return added

    def update(self, page_id: str, **fields) -> Optional[ComicPage]:
        """合并字段到已有页面；页面不存在（例如已重置）时返回 None。"""
        with self._lock:
            page_index = self._ids.get(page_id)
            if page_index is None:
                updated = None
            else:
                updated = self._pages[page_index].model_copy(update=fields)
                self._pages[page_index] = updated
        if updated is None:
            logger.debug(f"[存储] 页面 {page_id} 不存在，忽略更新: {list(fields)}")
            return None
        self._emit("update", [updated])
        return updated

    def get(self, page_index: int) -> Optional[ComicPage]:
        with self._lock:
            return self._pages.get(page_index)

    def contains(self, page_index: int) -> bool:
        with self._lock:
            return page_index in self._pages

    def all_pages(self) -> List[ComicPage]:
        """全部页面，按页码升序。"""
        with self._lock:
            return [self._pages[i] for i in sorted(self._pages)]

    def pages_before(self, page_index: int) -> List[ComicPage]:
        """页码小于 page_index 且已有分镜的故事页，按页码升序（封面/封底不参与叙事上下文）。"""
        return [
            p for p in self.all_pages()
            if p.type == "story" and p.narrative is not None and p.page_index < page_index
        ]

    def max_page_index(self) -> int:
        """当前最大页码；空存储返回 0。"""
        with self._lock:
            return max(self._pages, default=0)

    def clear(self) -> None:
        with self._lock:
            self._pages.clear()
            self._ids.clear()
        logger.debug("[存储] 已清空")
        self._emit("clear", [])

    def __len__(self) -> int:
        with self._lock:
            return len(self._pages)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """注册订阅者，返回取消订阅函数。"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: StoreEvent, pages: List[ComicPage]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, list(pages))
            except Exception as e:
                logger.error(f"[存储] ❌ 订阅者处理 {event} 事件失败: {e}", exc_info=True)
