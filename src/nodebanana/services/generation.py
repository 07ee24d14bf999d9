"""Clients for the remote image and text generation services.

The executor depends only on the :class:`ImageGenerator` and
:class:`TextGenerator` protocols, so tests and alternative backends can
provide any object with a matching ``generate`` coroutine.

Usage
-----
::

    from nodebanana.core.config import config
    from nodebanana.services.generation import ImageGenerationClient

    client = ImageGenerationClient.from_config(config)
    response = await client.generate(
        ImageGenerateRequest(images=[source], prompt="make it night")
    )
"""

from __future__ import annotations

import logging
from typing import Protocol

from nodebanana.core.config import NodeBananaConfig
from nodebanana.services.http import JsonServiceClient
from nodebanana.services.models import (
    ImageGenerateRequest,
    ImageGenerateResponse,
    TextGenerateRequest,
    TextGenerateResponse,
)

logger = logging.getLogger(__name__)


class ImageGenerator(Protocol):
    async def generate(self, request: ImageGenerateRequest) -> ImageGenerateResponse: ...


class TextGenerator(Protocol):
    async def generate(self, request: TextGenerateRequest) -> TextGenerateResponse: ...


class ImageGenerationClient(JsonServiceClient):
    """HTTP client for the image generation service."""

    @classmethod
    def from_config(cls, config: NodeBananaConfig) -> ImageGenerationClient:
        return cls(config.image_service_url, timeout=config.request_timeout)

    async def generate(self, request: ImageGenerateRequest) -> ImageGenerateResponse:
        logger.info(
            "Requesting image: model=%s, images=%d, aspect=%s, resolution=%s",
            request.model,
            len(request.images),
            request.aspect_ratio,
            request.resolution,
        )
        body = await self.post_json(request.model_dump(by_alias=True, exclude_none=True))
        return ImageGenerateResponse.model_validate(body)


class TextGenerationClient(JsonServiceClient):
    """HTTP client for the text generation service."""

    @classmethod
    def from_config(cls, config: NodeBananaConfig) -> TextGenerationClient:
        return cls(config.text_service_url, timeout=config.request_timeout)

    async def generate(self, request: TextGenerateRequest) -> TextGenerateResponse:
        logger.info(
            "Requesting text: provider=%s, model=%s, images=%d",
            request.provider,
            request.model,
            len(request.images or []),
        )
        body = await self.post_json(request.model_dump(by_alias=True, exclude_none=True))
        return TextGenerateResponse.model_validate(body)
