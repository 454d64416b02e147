"""Placeholder images: lookup, validation and resizing."""

import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ..exceptions import ValidationError
from ..utils.logger import logger
from .config.settings import ImageSettings

_NON_WORD_RE = re.compile(r"[^\w]")


def sanitize_placeholder(name: str) -> str:
    """``"Big Chart!"`` -> ``"big_chart_"``: every non-word character becomes ``_``."""
    return _NON_WORD_RE.sub("_", name.strip()).lower()


def validate_image_file(path: Path, settings: ImageSettings) -> None:
    """Reject unsupported extensions and files over the size cap."""
    path = Path(path)
    ext = path.suffix.lower()
    if ext not in settings.allowed_extensions:
        allowed = ", ".join(settings.allowed_extensions)
        raise ValidationError(f"Invalid image type '{ext or path.name}'. Allowed: {allowed}.")
    size = path.stat().st_size
    if size > settings.max_file_bytes:
        raise ValidationError(
            f"Image {path.name} is too large ({size} bytes). Maximum size is {settings.max_file_mb}MB."
        )


class ImageStore:
    """Resolve placeholder names to local images.

    Explicit ``name -> path`` mappings win; otherwise ``<root>/<sanitised name>.<ext>``
    is tried for each allowed extension. A missing image is normal and yields ``None``.
    """

    def __init__(
        self,
        settings: ImageSettings,
        root: Optional[Path] = None,
        mapping: Optional[Mapping[str, Path]] = None,
    ):
        self.settings = settings
        root = root if root is not None else settings.dir
        self.root = Path(root) if root else None
        self.mapping: Dict[str, Path] = {
            sanitize_placeholder(k): Path(v) for k, v in (mapping or {}).items()
        }

    def resolve(self, name: str) -> Optional[Path]:
        key = sanitize_placeholder(name)
        explicit = self.mapping.get(key)
        if explicit is not None:
            if explicit.is_file():
                return explicit
            logger.warning(f"Image for placeholder '{name}' not found: {explicit}")
            return None
        if self.root is None:
            return None
        for ext in self.settings.allowed_extensions:
            candidate = self.root / f"{key}{ext}"
            if candidate.is_file():
                return candidate
        return None

    def prepare(self, path: Path, work_dir: Path, name: Optional[str] = None) -> Path:
        """Fit the image inside ``max_width x max_height`` and save it as JPEG in ``work_dir``."""
        path = Path(path)
        validate_image_file(path, self.settings)
        out = Path(work_dir) / f"img_{sanitize_placeholder(name or path.stem)}.jpg"
        try:
            with Image.open(path) as img:
                img = ImageOps.exif_transpose(img)
                # never enlarge
                img.thumbnail((self.settings.max_width, self.settings.max_height))
                if img.mode != "RGB":
                    img = img.convert("RGB")
                img.save(out, "JPEG", quality=self.settings.jpeg_quality)
        except (UnidentifiedImageError, OSError) as e:
            raise ValidationError(f"Could not read image {path}: {e}") from e
        logger.debug(f"[Images] prepared {path.name} -> {out.name}")
        return out

    def resolve_all(self, names: Iterable[str], work_dir: Path) -> Dict[str, Path]:
        """Resolve and prepare every placeholder that has an image.

        Unresolvable placeholders are left out of the result; unreadable or
        oversized images are skipped with a warning.
        """
        resolved: Dict[str, Path] = {}
        for name in names:
            if name in resolved:
                continue
            src = self.resolve(name)
            if src is None:
                logger.info(f"[Images] no image for placeholder '{name}', skipping")
                continue
            try:
                resolved[name] = self.prepare(src, work_dir, name)
            except ValidationError as e:
                logger.warning(f"[Images] skipping placeholder '{name}': {e}")
        return resolved
