"""PDF 导出：把已完成插画的页面按页码顺序排成固定尺寸的竖版 PDF"""
import base64
import io
import logging
import time
from typing import List

from PIL import Image

from heroes.models.comic import ComicPage
from heroes.utils.logger_utils import format_file_size, log_generation_result

logger = logging.getLogger(__name__)

PDF_FILENAME = "Infinite-Heroes.pdf"
PAGE_WIDTH_PT = 480
PAGE_HEIGHT_PT = 720
RENDER_SCALE = 2  # 以 144 DPI 渲染，页面尺寸仍为 480x720pt


def printable_pages(pages: List[ComicPage]) -> List[ComicPage]:
    """有插画且不在加载中的页面，按页码升序。"""
    return sorted(
        (p for p in pages if p.image_url and not p.is_loading),
        key=lambda p: p.page_index,
    )


def decode_image_url(image_url: str) -> Image.Image:
    """解析 data URL（或纯 base64）为 PIL 图片。"""
    base64_data = image_url.split(",", 1)[1] if "," in image_url else image_url
    image = Image.open(io.BytesIO(base64.b64decode(base64_data)))
    image.load()
    return image


def _to_rgb(image: Image.Image) -> Image.Image:
    # 转换为RGB（处理RGBA等格式）
    if image.mode in ('RGBA', 'LA', 'P'):
        background = Image.new('RGB', image.size, (255, 255, 255))
        if image.mode == 'P':
            image = image.convert('RGBA')
        background.paste(image, mask=image.split()[-1] if image.mode in ('RGBA', 'LA') else None)
        return background
    if image.mode != 'RGB':
        return image.convert('RGB')
    return image


def build_comic_pdf(pages: List[ComicPage]) -> bytes:
    """每张插画铺满一页，返回 PDF 字节；没有可导出的页面时抛 ValueError。"""
    start_time = time.time()
    size = (PAGE_WIDTH_PT * RENDER_SCALE, PAGE_HEIGHT_PT * RENDER_SCALE)
    images: List[Image.Image] = []
    for page in printable_pages(pages):
        try:
            image = _to_rgb(decode_image_url(page.image_url))
        except Exception as e:
            logger.warning(f"[导出] ⚠️ 第 {page.page_index} 页图片无法解析，跳过: {e}")
            continue
        images.append(image.resize(size, Image.Resampling.LANCZOS))

    if not images:
        raise ValueError("没有可导出的页面")

    buffer = io.BytesIO()
    images[0].save(
        buffer,
        "PDF",
        save_all=True,
        append_images=images[1:],
        resolution=72.0 * RENDER_SCALE,
    )
    data = buffer.getvalue()
    log_generation_result(
        logger, "PDF导出", True, time.time() - start_time, f"{len(images)} 页, {format_file_size(len(data))}"
    )
    return data
