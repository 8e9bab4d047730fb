"""
文件输入输出模块
读取浮点/8位图像为 ImageDescriptor，保存色调映射后的结果
"""
import os
import numpy as np
import tifffile
from PIL import Image
from typing import Optional, Sequence
from loguru import logger

from hdrstack.config import SUPPORTED_HDR_EXTENSIONS, SUPPORTED_LDR_EXTENSIONS
from hdrstack.errors import InvalidParameter
from hdrstack.model.image import ImageDescriptor


def load_image(path: str, channel_names: Optional[Sequence[str]] = None) -> ImageDescriptor:
    """
    读取图像，根据扩展名选择解码库

    Args:
        path: 图像路径
        channel_names: 可选的通道名称（默认按通道数推断 Y / RGB / RGBA）

    Returns:
        ImageDescriptor: 线性浮点数据
    """
    file_ext = os.path.splitext(path)[1].lower()
    name = os.path.basename(path)

    if file_ext in SUPPORTED_HDR_EXTENSIONS:
        pixels = _load_tiff(path)
    elif file_ext in SUPPORTED_LDR_EXTENSIONS:
        pixels = _load_ldr(path)
    else:
        raise InvalidParameter(f"Unsupported image format: {file_ext or name}")

    logger.info(f"  📂 Loaded: {name} {pixels.shape[1]}x{pixels.shape[0]}")
    return ImageDescriptor.from_array(name, pixels, channel_names)


def _load_tiff(path: str) -> np.ndarray:
    """TIFF: 浮点数据原样保留，整数数据归一化到 [0, 1]"""
    data = tifffile.imread(path)
    if data.ndim == 3 and data.shape[0] in (1, 3, 4) and data.shape[2] not in (1, 3, 4):
        # 平面存储 (C, H, W) -> (H, W, C)
        data = np.moveaxis(data, 0, -1)
    if np.issubdtype(data.dtype, np.integer):
        return data.astype(np.float32) / float(np.iinfo(data.dtype).max)
    return data.astype(np.float32)


def _load_ldr(path: str) -> np.ndarray:
    """8位图像: sRGB 解码为线性，Alpha 保持线性"""
    import colour

    with Image.open(path) as img:
        if img.mode not in ('L', 'RGB', 'RGBA'):
            img = img.convert('RGBA' if 'A' in img.getbands() else 'RGB')
        data = np.asarray(img, dtype=np.float32) / 255.0

    if data.ndim == 2:
        return colour.cctf_decoding(data, function='sRGB').astype(np.float32)

    linear = data.copy()
    linear[:, :, :3] = colour.cctf_decoding(data[:, :, :3], function='sRGB')
    return linear


def save_ldr(img: np.ndarray, output_path: str) -> bool:
    """
    保存 RGBA8 结果，根据扩展名自动选择格式

    Args:
        img: (h, w, 4) uint8 数据
        output_path: 输出路径

    Returns:
        bool: 是否保存成功
    """
    file_ext = os.path.splitext(output_path)[1].lower()
    try:
        image = Image.fromarray(np.ascontiguousarray(img, dtype=np.uint8))
        if file_ext in ('.jpg', '.jpeg', '.bmp'):
            # 这些格式不支持 Alpha
            image = image.convert('RGB')
        image.save(output_path)
        logger.info(f"  ✅ Saved: {output_path}")
        return True
    except (OSError, ValueError) as e:
        logger.error(f"  ❌ Failed to save file: {e}")
        return False

