"""生成类服务的统一日志格式"""
from typing import Optional, Literal
import logging

ServiceType = Literal["分镜生成", "插画生成", "PDF导出"]


def log_generation_result(
    logger: logging.Logger,
    service_type: ServiceType,
    success: bool,
    elapsed: float,
    output: Optional[str] = None,
    error: Optional[str] = None,
    target: Optional[str] = None,
) -> None:
    """
    记录一次生成调用的结果，成功记 info，失败记 error（失败后由调用方降级，不在这里抛出）

    Args:
        target: 生成对象（如 "第 3 页"、"cover"），为空时省略

    Examples:
        >>> log_generation_result(logger, "插画生成", True, 2.5, "312.4 KB", target="第 3 页")
        [插画生成] ✅ 第 3 页 完成，耗时: 2.50s, 输出: 312.4 KB
    """
    prefix = f"[{service_type}] {'✅' if success else '❌'}"
    subject = f" {target}" if target else ""
    if success:
        detail = f", 输出: {output}" if output else ""
        logger.info(f"{prefix}{subject} 完成，耗时: {elapsed:.2f}s{detail}")
    else:
        detail = f", 错误: {error}" if error else ""
        logger.error(f"{prefix}{subject} 失败，耗时: {elapsed:.2f}s{detail}")


def format_file_size(size_bytes: int) -> str:
    """字节数转为 B / KB / MB，例如 1536000 -> '1.5 MB'"""
    for unit, scale in (("MB", 1024 * 1024), ("KB", 1024)):
        if size_bytes >= scale:
            return f"{size_bytes / scale:.1f} {unit}"
    return f"{size_bytes} B"
