from .comic import (
    FocusChar,
    PageType,
    Persona,
    Beat,
    ComicPage,
    StoryConfig,
    ComicLayout,
    SessionSnapshot,
    ChoiceRequest,
)
__all__ = [
    "FocusChar",
    "PageType",
    "Persona",
    "Beat",
    "ComicPage",
    "StoryConfig",
    "ComicLayout",
    "SessionSnapshot",
    "ChoiceRequest",
]
