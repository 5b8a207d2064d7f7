# question_bank/file_saver.py
from pathlib import Path
from typing import Optional, Union

from loguru import logger


def save_as(data: Union[bytes, str], filename: str, directory: Optional[Union[str, Path]] = None) -> None:
    """保存文件到本地导出目录：bytes 原样写入，str 以 UTF-8 写入。"""
    target_dir = Path(directory) if directory is not None else Path.cwd()
    target = target_dir / filename

    if isinstance(data, bytes):
        payload = data
    elif isinstance(data, str):
        payload = data.encode('utf-8')
    else:
        raise TypeError(f"Unsupported data type for save_as: {type(data).__name__}")

    target_dir.mkdir(parents=True, exist_ok=True)
    target.write_bytes(payload)
    logger.info(f"Saved {len(payload)} bytes to {target}")
