# question_bank/image_utils.py
import base64
import io
import re

from PIL import Image, UnidentifiedImageError

DATA_URL_RE = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<payload>.*)$', re.DOTALL)


def compress_image(data: bytes, max_size: int = 1000, quality: int = 80) -> bytes:
    """
    缩放图片使最长边不超过 max_size（不放大），并重新编码为 JPEG。

    Raises:
        ValueError: if ``data`` is not a decodable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            scale = min(1.0, max_size / max(width, height))
            resized = image
            if scale < 1.0:
                size = (max(1, round(width * scale)), max(1, round(height * scale)))
                resized = image.resize(size, Image.Resampling.LANCZOS)
            if resized.mode != 'RGB':
                resized = resized.convert('RGB')

            output = io.BytesIO()
            resized.save(output, format='JPEG', quality=quality)
            return output.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Unsupported or corrupt image: {e}") from e


def to_data_url(data: bytes, mime_type: str = 'image/jpeg') -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(url: str) -> bytes:
    match = DATA_URL_RE.match(url)
    if not match:
        raise ValueError("Not a data URL.")
    payload = match.group('payload')
    if match.group('b64'):
        return base64.b64decode(payload, validate=True)
    return payload.encode('utf-8')
