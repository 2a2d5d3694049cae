# app/integrations/stability_client.py
"""
Stability text-to-image client.

Processing flow:
    1. Build the text-to-image payload from prompt + size + sample count.
    2. POST it and wait for the response. There is no timeout: a hung backend
       blocks the caller until the connection drops.
    3. Decode every returned artifact from base64.

Error handling:
    Any failure raises `GenerationError` with the backend's diagnostic text.
    A response with a different number of images than requested is a failure,
    partial results are never returned.
"""

import base64
import binascii
from typing import List, Optional

import requests

from core.config import settings
from core.errors import GenerationError
from core.logger import logger


class StabilityClient:

    def __init__(self, api_key: str = None, api_host: str = None,
                 engine_id: str = None, session: Optional[requests.Session] = None):
        self.api_key = api_key or settings.STABILITY_API_KEY
        self.api_host = (api_host or settings.STABILITY_API_HOST).rstrip("/")
        self.engine_id = engine_id or settings.STABILITY_ENGINE_ID
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.api_host}/v1beta/generation/{self.engine_id}/text-to-image"

    def build_payload(self, prompt: str, count: int, width: int, height: int) -> dict:
        return {
            "text_prompts": [{"text": prompt}],
            "cfg_scale": settings.STABILITY_CFG_SCALE,
            "clip_guidance_preset": settings.STABILITY_CLIP_GUIDANCE_PRESET,
            "height": height,
            "width": width,
            "samples": count,
            "steps": settings.STABILITY_STEPS,
        }

    def generate(self, prompt: str, count: int, width: int, height: int) -> List[bytes]:
        """
        Generate `count` images for `prompt`.

        Returns:
            exactly `count` PNG byte buffers, in backend order

        Raises:
            GenerationError: transport failure, non-200 status, malformed body
                or wrong number of images
        """
        try:
            resp = self.session.post(
                self.url,
                json=self.build_payload(prompt, count, width, height),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                timeout=None,
            )
        except requests.RequestException as e:
            raise GenerationError(f"request failed: {e}") from e

        if resp.status_code != 200:
            raise GenerationError(f"status {resp.status_code}: {resp.text[:500]}")

        try:
            artifacts = resp.json()["artifacts"]
            images = [base64.b64decode(a["base64"], validate=True) for a in artifacts]
        except (ValueError, KeyError, TypeError, binascii.Error) as e:
            raise GenerationError(f"malformed response: {e}") from e

        if len(images) != count:
            raise GenerationError(f"expected {count} images, backend returned {len(images)}")

        logger.debug(f"Stability returned {len(images)} image(s) for engine={self.engine_id}")
        return images
