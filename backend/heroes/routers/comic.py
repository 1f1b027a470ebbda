"""漫画 API：设定、上传角色、开始故事、选择、翻页、重置、下载 PDF"""
import logging
from functools import lru_cache
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response
from pydantic import BaseModel

from heroes.constants.comic_options import GENRES, get_all_options, is_valid_language
from heroes.models.comic import ChoiceRequest, Persona, StoryConfig
from heroes.services.export_service import PDF_FILENAME, build_comic_pdf
from heroes.services.page_orchestrator import (
    ChoiceAlreadyResolvedError,
    PageOrchestrator,
    build_orchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/comic", tags=["comic"])


class PersonaRequest(BaseModel):
    """角色照片（base64，不含 data: 前缀也可以）"""
    base64: str
    desc: Optional[str] = None
    mime_type: str = "image/jpeg"


@lru_cache
def get_orchestrator() -> PageOrchestrator:
    """单用户单故事：整个进程共用一个编排器。"""
    return build_orchestrator()


def _strip_data_prefix(payload: str) -> str:
    return payload.split(",", 1)[1] if payload.startswith("data:") and "," in payload else payload


@router.get("/options")
async def list_options():
    """获取类型、基调、语言选项。"""
    return get_all_options()


@router.get("/state")
async def get_state(orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    """获取会话状态与全部页面，用于前端轮询。"""
    return orchestrator.snapshot().model_dump()


@router.put("/config")
async def update_config(body: StoryConfig, orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    if body.genre not in GENRES:
        raise HTTPException(status_code=400, detail=f"未知类型: {body.genre}")
    if not is_valid_language(body.language):
        raise HTTPException(status_code=400, detail=f"未知语言: {body.language}")
    try:
        orchestrator.configure(body)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"config": orchestrator.config.model_dump()}


@router.put("/hero")
async def set_hero(body: PersonaRequest, orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    payload = _strip_data_prefix(body.base64.strip())
    if not payload:
        raise HTTPException(status_code=400, detail="主角照片不能为空")
    orchestrator.set_hero(Persona(base64=payload, desc=body.desc or "Hero", mime_type=body.mime_type))
    return {"ok": True}


@router.put("/friend")
async def set_friend(body: PersonaRequest, orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    payload = _strip_data_prefix(body.base64.strip())
    if not payload:
        raise HTTPException(status_code=400, detail="配角照片不能为空")
    orchestrator.set_friend(Persona(base64=payload, desc=body.desc or "Co-Star", mime_type=body.mime_type))
    return {"ok": True}


@router.delete("/hero")
async def clear_hero(orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    orchestrator.set_hero(None)
    return {"ok": True}


@router.delete("/friend")
async def clear_friend(orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    orchestrator.set_friend(None)
    return {"ok": True}


@router.post("/launch")
async def launch(orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    """开始生成：封面立即开始，开头几页在过场动画后开始。"""
    try:
        started = await orchestrator.launch_story()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not started:
        raise HTTPException(status_code=401, detail="生成服务的 API Key 未配置")
    return orchestrator.snapshot().model_dump()


@router.post("/choice")
async def choose(req: ChoiceRequest, orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    """提交决策页的选择，触发续写。"""
    logger.info(f"[API] POST /choice - page_index={req.page_index}, choice={req.choice[:50]}")
    try:
        extended = orchestrator.handle_choice(req.page_index, req.choice)
    except ChoiceAlreadyResolvedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "extended": extended}


@router.post("/open")
async def open_book(orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    return {"current_sheet_index": orchestrator.open_book()}


@router.post("/sheet/{sheet_index}")
async def turn_sheet(sheet_index: int, orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    return {"current_sheet_index": orchestrator.turn_to_sheet(sheet_index)}


@router.post("/reset")
async def reset(orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    orchestrator.reset()
    return {"ok": True}


@router.get("/download")
async def download(orchestrator: PageOrchestrator = Depends(get_orchestrator)):
    """下载已完成页面组成的 PDF。"""
    try:
        data = build_comic_pdf(orchestrator.store.all_pages())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{PDF_FILENAME}"'},
    )
