from .beat_service import BeatSynthesizer
from .illustration_service import IllustrationSynthesizer
from .page_orchestrator import PageOrchestrator, build_orchestrator
from .export_service import build_comic_pdf

__all__ = [
    "BeatSynthesizer",
    "IllustrationSynthesizer",
    "PageOrchestrator",
    "build_orchestrator",
    "build_comic_pdf",
]
