"""漫画故事可选项：类型、基调、语言"""
from typing import Dict, List, TypedDict


class Language(TypedDict):
    """目标语言定义"""
    code: str
    name: str


CUSTOM_GENRE = "Custom"

GENRES: List[str] = [
    "Classic Horror",
    "Superhero Action",
    "Dark Sci-Fi",
    "High Fantasy",
    "Neon Noir Detective",
    "Wasteland Apocalypse",
    "Lighthearted Comedy",
    "Teen Drama / Slice of Life",
    CUSTOM_GENRE,
]

TONES: List[str] = [
    "ACTION-HEAVY (Short, punchy dialogue. Focus on kinetics.)",
    "INNER-MONOLOGUE (Heavy captions revealing thoughts.)",
    "QUIPPY (Characters use humor as a defense mechanism.)",
    "OPERATIC (Grand, dramatic declarations and high stakes.)",
    "CASUAL (Natural dialogue, focus on relationships/gossip.)",
    "WHOLESOME (Warm, gentle, optimistic.)",
]

LANGUAGES: List[Language] = [
    {"code": "en-US", "name": "English (US)"},
    {"code": "ar-EG", "name": "Arabic (Egyptian)"},
    {"code": "de-DE", "name": "German (Germany)"},
    {"code": "es-MX", "name": "Spanish (Mexico)"},
    {"code": "fr-FR", "name": "French (France)"},
    {"code": "hi-IN", "name": "Hindi (India)"},
    {"code": "id-ID", "name": "Indonesian (Indonesia)"},
    {"code": "it-IT", "name": "Italian (Italy)"},
    {"code": "ja-JP", "name": "Japanese (Japan)"},
    {"code": "ko-KR", "name": "Korean (South Korea)"},
    {"code": "pt-BR", "name": "Portuguese (Brazil)"},
    {"code": "ru-RU", "name": "Russian (Russia)"},
    {"code": "zh-CN", "name": "Chinese (Mandarin)"},
]

DEFAULT_LANGUAGE_NAME = "English"

_LANGUAGE_BY_CODE: Dict[str, Language] = {lang["code"]: lang for lang in LANGUAGES}


# 获取语言名称
def get_language_name(code: str) -> str:
    """根据语言代码获取语言名称，未知代码回退为英文"""
    lang = _LANGUAGE_BY_CODE.get(code)
    if not lang:
        return DEFAULT_LANGUAGE_NAME
    return lang["name"]


def is_valid_language(code: str) -> bool:
    return code in _LANGUAGE_BY_CODE


# 获取所有选项
def get_all_options() -> dict:
    """获取前端设置页需要的全部选项"""
    return {
        "genres": list(GENRES),
        "tones": list(TONES),
        "languages": list(LANGUAGES),
    }
