import asyncio
import base64
import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from PIL import Image, UnidentifiedImageError

from edugrade.core.config import Settings, settings as default_settings
from edugrade.core.exceptions import (
    EvaluationException,
    FileTooLargeException,
    UnsupportedMediaTypeException,
)
from edugrade.models.document import EncodedPart, RawFile

logger = logging.getLogger(__name__)

PDF = "application/pdf"
JPEG = "image/jpeg"
PNG = "image/png"
SUPPORTED_MEDIA_TYPES = (PDF, JPEG, PNG)

_MEDIA_ALIASES = {"image/jpg": JPEG, "image/pjpeg": JPEG, "image/x-png": PNG}
_GENERIC_MEDIA_TYPES = ("", "application/octet-stream", "binary/octet-stream")


def sniff_media_type(content: bytes) -> Optional[str]:
    """Detect PDF/JPEG/PNG from magic bytes."""
    if content.startswith(b"%PDF-"):
        return PDF
    if content.startswith(b"\xff\xd8\xff"):
        return JPEG
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return PNG
    return None


def resolve_media_type(raw: RawFile) -> str:
    """Magic bytes decide the media type; a contradicting declaration is only logged."""
    declared = (raw.media_type or "").split(";")[0].strip().lower()
    declared = _MEDIA_ALIASES.get(declared, declared)
    sniffed = sniff_media_type(raw.content)

    if sniffed is None:
        raise UnsupportedMediaTypeException(raw.filename, declared or None)
    if declared not in _GENERIC_MEDIA_TYPES and declared != sniffed:
        logger.warning(f'Declared type {declared} of "{raw.filename}" does not match content; using {sniffed}')
    return sniffed


@dataclass
class EncodeBatchResult:
    accepted: List[EncodedPart] = field(default_factory=list)
    rejected: List[EvaluationException] = field(default_factory=list)
    # one entry per input file, in upload order
    outcomes: List[Union[EncodedPart, EvaluationException]] = field(default_factory=list)


class DocumentEncoder:
    """Turns raw uploads into inline, transport-safe document parts.

    Oversized images are optionally downscaled to ``IMAGE_MAX_WIDTH`` pixels
    and re-encoded (JPEG stays JPEG, PNG stays PNG). PDFs pass through.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.max_bytes = self.settings.max_file_size_bytes
        self.max_width = int(self.settings.IMAGE_MAX_WIDTH or 0)

    def encode(self, raw: RawFile) -> EncodedPart:
        if raw.size > self.max_bytes:
            raise FileTooLargeException(raw.filename, raw.size, self.max_bytes)

        media_type = resolve_media_type(raw)
        content = raw.content
        if media_type in (JPEG, PNG) and self.max_width > 0:
            content = self._downscale(raw.filename, content, media_type)

        return EncodedPart(
            media_type=media_type,
            data=base64.b64encode(content).decode("ascii"),
            filename=raw.filename,
        )

    def _downscale(self, filename: str, content: bytes, media_type: str) -> bytes:
        try:
            with Image.open(io.BytesIO(content)) as img:
                if img.width <= self.max_width:
                    return content
                height = max(1, round(img.height * self.max_width / img.width))
                resized = img.resize((self.max_width, height), Image.LANCZOS)
                out = io.BytesIO()
                if media_type == JPEG:
                    if resized.mode not in ("RGB", "L"):
                        resized = resized.convert("RGB")
                    resized.save(out, format="JPEG", quality=self.settings.IMAGE_JPEG_QUALITY, optimize=True)
                else:
                    resized.save(out, format="PNG", optimize=True)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            # Corrupt or oversized raster: send original bytes, the service decides
            logger.warning(f'Could not downscale "{filename}": {e}')
            return content

        logger.info(f'Downscaled "{filename}" from {len(content)} to {out.tell()} bytes')
        return out.getvalue()

    async def encode_batch(self, files: Sequence[RawFile]) -> EncodeBatchResult:
        """Encode a role group concurrently; results keep upload order."""
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self.encode, raw) for raw in files),
            return_exceptions=True,
        )

        result = EncodeBatchResult()
        for outcome in outcomes:
            if isinstance(outcome, (FileTooLargeException, UnsupportedMediaTypeException)):
                logger.warning(f"Rejected upload: {outcome.message}")
                result.rejected.append(outcome)
                result.outcomes.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.accepted.append(outcome)
                result.outcomes.append(outcome)
        return result
