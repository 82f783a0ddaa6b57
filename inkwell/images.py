"""Image records for posts.

Image dimensions are probed with Pillow through the Filesystem capability.
ImageData is the small record templates use to emit width/height/src
attributes; Image groups the main ImageData of a declared post image with
its variants (thumbnails, etc.) and free-form metadata.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from PIL import Image as PILImage

from .errors import ImageMetadataError, MissingImageError
from .protocols import Filesystem

if TYPE_CHECKING:
    from .content import ImageMeta


@dataclass(frozen=True)
class ImageData:
    """Dimensions and output path of a single image file.

    Attributes:
        width: Width in pixels.
        height: Height in pixels.
        path: Path of the image in the rendered site.
    """

    width: int
    height: int
    path: str


def load_image_data(fs: Filesystem, src_path: str, dst_path: str) -> ImageData:
    """Read the dimensions of an image file.

    Args:
        fs: Filesystem holding the image.
        src_path: Path of the image in the source tree.
        dst_path: Path the image will have in the rendered site.

    Returns:
        ImageData for the image.

    Raises:
        ImageMetadataError: If the file is missing or not a readable image.
    """
    try:
        with fs.open(src_path) as f, PILImage.open(f) as img:
            width, height = img.size
    except OSError as exc:
        raise ImageMetadataError(
            f"Could not load image metadata: {exc}", src_path
        ) from exc
    return ImageData(width=width, height=height, path=dst_path)


class Image:
    """A post image declared in meta.yaml, with its variants."""

    def __init__(
        self,
        meta: ImageMeta,
        data: ImageData,
        variants: dict[str, ImageData] | None = None,
    ):
        self.meta = meta
        self.data = data
        self.variants = variants or {}

    @classmethod
    def load(
        cls, fs: Filesystem, meta: ImageMeta, src_dir: str, dst_dir: str
    ) -> Image:
        """Probe an image and all of its variants.

        Args:
            fs: Filesystem holding the post.
            meta: Declared image metadata.
            src_dir: Post source directory.
            dst_dir: Post output path.

        Returns:
            Loaded Image.

        Raises:
            ImageMetadataError: If the image or one of its variants can't be read.
        """
        data = load_image_data(
            fs, posixpath.join(src_dir, meta.src), posixpath.join(dst_dir, meta.src)
        )
        variants = {
            key: load_image_data(
                fs, posixpath.join(src_dir, src), posixpath.join(dst_dir, src)
            )
            for key, src in meta.variants.items()
        }
        return cls(meta, data, variants)

    @property
    def metadata(self) -> dict[str, Any]:
        return self.meta.metadata

    def has_metadata(self, key: str) -> bool:
        return key in self.meta.metadata

    def variant(self, key: str) -> ImageData:
        if key not in self.variants:
            raise MissingImageError(f"Could not get image variant with key {key}")
        return self.variants[key]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Image({self.data.path!r}, {len(self.variants)} variants)"
