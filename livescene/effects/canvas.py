"""RGBA drawing surface with the compositing operations the effects need.

Pixels are straight (non-premultiplied) RGBA ``uint8``. Blur radii follow
the CSS ``blur(px)`` convention: the radius is the Gaussian sigma.
"""

from __future__ import annotations

import cv2
import numpy as np

from livescene.errors import CaptureUnsupportedError
from livescene.media.resource import VideoResource


def gaussian_blur(image: np.ndarray, radius_px: float) -> np.ndarray:
    if radius_px <= 0:
        return image
    return cv2.GaussianBlur(image, (0, 0), sigmaX=float(radius_px), borderType=cv2.BORDER_REPLICATE)


def _fit(image: np.ndarray, width: int, height: int) -> np.ndarray:
    if image.shape[1] == width and image.shape[0] == height:
        return image
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_LINEAR)


def _as_alpha(mask: np.ndarray) -> np.ndarray:
    """Normalize a mask (grayscale, or RGBA using its alpha) to float32 in [0, 1]."""
    if mask.ndim == 3:
        mask = mask[..., 3] if mask.shape[2] == 4 else mask[..., 0]
    if mask.dtype == np.uint8:
        return mask.astype(np.float32) / 255.0
    return np.clip(mask.astype(np.float32), 0.0, 1.0)


class Canvas:
    """A resizable RGBA pixel buffer."""

    capture_supported = True

    def __init__(self, width: int = 0, height: int = 0):
        self.pixels = np.zeros((height, width, 4), dtype=np.uint8)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    def resize(self, width: int, height: int) -> None:
        """Reallocate (and clear) the buffer if the size changed."""
        if width != self.width or height != self.height:
            self.pixels = np.zeros((height, width, 4), dtype=np.uint8)

    def clear(self) -> None:
        self.pixels[...] = 0

    def fill(self, color: tuple[int, int, int]) -> None:
        self.pixels[..., :3] = color
        self.pixels[..., 3] = 255

    def draw_image(self, image: np.ndarray, blur_px: float = 0) -> None:
        """Composite *image* over the canvas (source-over), scaled to fit.

        ``blur_px`` applies a Gaussian filter to the image before drawing.
        """
        if self.pixels.size == 0:
            return
        src = gaussian_blur(_fit(image, self.width, self.height), blur_px)
        src_a = src[..., 3:4].astype(np.float32) / 255.0
        if np.all(src_a == 1.0):
            self.pixels[...] = src
            return
        dst_a = self.pixels[..., 3:4].astype(np.float32) / 255.0
        out_a = src_a + dst_a * (1.0 - src_a)
        src_rgb = src[..., :3].astype(np.float32)
        dst_rgb = self.pixels[..., :3].astype(np.float32)
        with np.errstate(invalid="ignore", divide="ignore"):
            out_rgb = (src_rgb * src_a + dst_rgb * dst_a * (1.0 - src_a)) / out_a
        out_rgb = np.nan_to_num(out_rgb)
        self.pixels[..., :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
        self.pixels[..., 3] = np.clip(np.rint(out_a[..., 0] * 255.0), 0, 255).astype(np.uint8)

    def mask_in(self, mask: np.ndarray) -> None:
        """Keep pixels only where *mask* is opaque (destination-in)."""
        if self.pixels.size == 0:
            return
        coverage = _fit(_as_alpha(mask), self.width, self.height)
        alpha = self.pixels[..., 3].astype(np.float32) * coverage
        self.pixels[..., 3] = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)

    def feather(self, radius_px: float) -> None:
        """Blur the alpha channel only, softening cut-out edges."""
        if radius_px <= 0 or self.pixels.size == 0:
            return
        self.pixels[..., 3] = gaussian_blur(np.ascontiguousarray(self.pixels[..., 3]), radius_px)

    def get_image_data(self) -> np.ndarray:
        return self.pixels.copy()

    def put_image_data(self, data: np.ndarray) -> None:
        if data.shape != self.pixels.shape:
            raise ValueError(f"Image data shape {data.shape} does not match canvas {self.pixels.shape}")
        self.pixels[...] = data

    def capture_stream(self, fps: float = 30.0) -> "CanvasResource":
        """Expose the canvas as a live VideoResource."""
        if not self.capture_supported:
            raise CaptureUnsupportedError(f"{type(self).__name__} cannot be captured")
        return CanvasResource(self, fps=fps)


class CanvasResource(VideoResource):
    """A VideoResource whose frames are snapshots of a Canvas."""

    kind = "canvas"

    def __init__(self, canvas: Canvas, fps: float = 30.0, **kwargs):
        super().__init__(width=canvas.width, height=canvas.height, fps=fps, **kwargs)
        self._canvas: Canvas | None = canvas

    def read(self) -> np.ndarray | None:
        # Always the current canvas contents; the canvas is the frame clock
        if self._canvas is None:
            return None
        return self._canvas.get_image_data()

    def _release(self) -> None:
        self._canvas = None
