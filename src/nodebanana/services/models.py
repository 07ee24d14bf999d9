"""Pydantic request and response models for the generation services.

These models define the JSON contract between the engine and the remote
services.  The engine only knows this contract, not the services'
internals.

Models
------
ImageGenerateRequest / ImageGenerateResponse
    ``POST`` to the image generation service.
TextGenerateRequest / TextGenerateResponse
    ``POST`` to the text generation service.
"""

from __future__ import annotations

from pydantic import Field

from nodebanana.graph.models import AspectRatio, ImageModel, Resolution, TextProvider, WireModel


class ImageGenerateRequest(WireModel):
    """Request body for the image generation service.

    Attributes:
        images: Input images as data URLs, in edge order.
        prompt: Generation prompt.
        aspect_ratio: Requested aspect ratio.
        resolution: Output resolution (honoured by ``nano-banana-pro`` only).
        model: Image model identifier.
        use_google_search: Ground the generation with web search
            (``nano-banana-pro`` only).
        seed: Optional seed for reproducible output.
    """

    images: list[str] = Field(default_factory=list)
    prompt: str
    aspect_ratio: AspectRatio | None = None
    resolution: Resolution | None = None
    model: ImageModel = "nano-banana-pro"
    use_google_search: bool | None = None
    seed: int | None = None


class ImageGenerateResponse(WireModel):
    success: bool
    image: str | None = None
    error: str | None = None


class TextGenerateRequest(WireModel):
    """Request body for the text generation service.

    ``images`` is omitted from the payload when empty.
    """

    prompt: str
    images: list[str] | None = None
    provider: TextProvider = "google"
    model: str
    temperature: float = 0.7
    max_tokens: int = 8192


class TextGenerateResponse(WireModel):
    success: bool
    text: str | None = None
    error: str | None = None
