"""漫画页、分镜与会话数据模型"""
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field

from heroes.config import Settings
from heroes.constants.comic_options import GENRES, TONES

FocusChar = Literal["hero", "friend", "other"]  # friend 即配角（co-star）
PageType = Literal["cover", "back_cover", "story"]


class Persona(BaseModel):
    """参考角色：主角或配角的照片（base64）与简短描述，整体替换，不做局部修改"""
    model_config = ConfigDict(frozen=True)

    base64: str
    desc: str = "Hero"
    mime_type: str = "image/jpeg"


class Beat(BaseModel):
    """一页的叙事内容"""
    model_config = ConfigDict(frozen=True)

    caption: str = ""
    dialogue: str = ""
    scene: str = ""  # 英文，用于画图
    focus_char: FocusChar = "other"
    choices: List[str] = Field(default_factory=list)


class ComicPage(BaseModel):
    id: str
    page_index: int
    type: PageType = "story"
    narrative: Optional[Beat] = None
    image_url: Optional[str] = None  # data:<mime>;base64,...
    is_loading: bool = True
    resolved_choice: Optional[str] = None
    is_decision_page: bool = False
    choices: List[str] = Field(default_factory=list)


class StoryConfig(BaseModel):
    """会话级故事设定，开始生成后只读"""
    model_config = ConfigDict(frozen=True)

    genre: str = GENRES[0]
    tone: str = TONES[0]
    language: str = "en-US"
    custom_premise: str = ""  # 仅 genre 为 Custom 时使用
    rich_mode: bool = True


class ComicLayout(BaseModel):
    """页码布局常量"""
    model_config = ConfigDict(frozen=True)

    max_story_pages: int = 10
    back_cover_page: int = 11
    total_pages: int = 11
    initial_pages: int = 2
    batch_size: int = 6
    decision_pages: frozenset[int] = frozenset({3})

    @classmethod
    def from_settings(cls, settings: Settings) -> "ComicLayout":
        return cls(
            max_story_pages=settings.max_story_pages,
            back_cover_page=settings.back_cover_page,
            total_pages=settings.total_pages,
            initial_pages=settings.initial_pages,
            batch_size=settings.batch_size,
            decision_pages=frozenset(settings.decision_pages),
        )

    def page_type(self, page_index: int) -> PageType:
        if page_index == 0:
            return "cover"
        if page_index == self.back_cover_page:
            return "back_cover"
        return "story"

    def is_decision_page(self, page_index: int) -> bool:
        return page_index in self.decision_pages


class SessionSnapshot(BaseModel):
    """供前端轮询的会话快照"""
    is_started: bool
    current_sheet_index: int
    config: StoryConfig
    has_hero: bool
    has_friend: bool
    pages: List[ComicPage]


class ChoiceRequest(BaseModel):
    page_index: int
    choice: str
