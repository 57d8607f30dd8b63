"""
MEDIA SERVICE MODULE
====================

Image and video generation through third-party inference providers.

  ImageService - FLUX.1-dev on Replicate: start a prediction, then poll it once a
                 second until it succeeds, fails, or we give up (30 attempts).
  VideoService - Wan2.1 text-to-video through Hugging Face Inference with the
                 Replicate provider; the returned bytes become a data: URL.

Both are synchronous (requests / InferenceClient); main.py exposes them from
plain `def` endpoints so FastAPI runs them in its thread pool.
"""

import base64
import logging
import random
import time
from typing import Callable, Optional

import requests
from huggingface_hub import InferenceClient

from config import (
    IMAGE_MODEL,
    IMAGE_POLL_INTERVAL_SECONDS,
    IMAGE_POLL_MAX_ATTEMPTS,
    REPLICATE_API_KEY,
    REPLICATE_API_URL,
)
from parley.models import ImageGenerationRequest, VideoGenerationRequest

logger = logging.getLogger("Parley")

REQUEST_TIMEOUT_SECONDS = 30


class MediaGenerationError(Exception):
    """Image or video generation failed; message is safe to show the user."""


class ImageService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = IMAGE_MODEL,
        poll_interval: float = IMAGE_POLL_INTERVAL_SECONDS,
        max_attempts: int = IMAGE_POLL_MAX_ATTEMPTS,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = REPLICATE_API_KEY if api_key is None else api_key
        self.model = model
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.session = session or requests.Session()
        self._sleep = sleep

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def is_available(self) -> bool:
        """True if the key is set and Replicate answers for the model."""
        if not self.api_key:
            return False
        try:
            response = self.session.get(
                f"{REPLICATE_API_URL}/models/{self.model}",
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error("Error checking FLUX availability: %s", e)
            return False
        return response.ok

    def generate(self, params: ImageGenerationRequest) -> str:
        """Run one prediction and return the image URL."""
        if not self.api_key:
            raise MediaGenerationError("REPLICATE_API_KEY is not set in environment variables")

        seed = random.randint(0, 999_999) if params.randomize_seed else params.seed
        payload = {
            "input": {
                "prompt": params.prompt,
                "width": params.width,
                "height": params.height,
                "seed": seed,
                "guidance_scale": params.guidance_scale,
                "num_inference_steps": params.num_inference_steps,
            }
        }

        try:
            start = self.session.post(
                f"{REPLICATE_API_URL}/models/{self.model}/predictions",
                headers=self._headers(),
                json=payload,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            if not start.ok:
                raise MediaGenerationError(f"Replicate API error: {start.text}")
            prediction_id = start.json()["id"]
            logger.info("Started image prediction %s", prediction_id)
            return self._poll(prediction_id)
        except requests.RequestException as e:
            logger.error("Error generating image: %s", e)
            raise MediaGenerationError(f"Failed to generate image: {e}") from e

    def _poll(self, prediction_id: str) -> str:
        for _ in range(self.max_attempts):
            self._sleep(self.poll_interval)
            response = self.session.get(
                f"{REPLICATE_API_URL}/predictions/{prediction_id}",
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            if not response.ok:
                raise MediaGenerationError(f"Replicate API status error: {response.text}")

            status = response.json()
            if status.get("status") == "succeeded":
                output = status.get("output")
                if isinstance(output, str) and output:
                    return output
                if isinstance(output, list) and output:
                    return output[0]
            elif status.get("status") == "failed":
                raise MediaGenerationError(f"Image generation failed: {status.get('error') or 'Unknown error'}")

        raise MediaGenerationError("Timed out waiting for image generation")


class VideoService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        client_factory: Callable[..., InferenceClient] = InferenceClient,
    ):
        self.api_key = REPLICATE_API_KEY if api_key is None else api_key
        self._client_factory = client_factory

    def is_available(self) -> bool:
        return bool(self.api_key)

    def generate(self, params: VideoGenerationRequest) -> str:
        """Generate a video and return it as a base64 data: URL."""
        if not self.api_key:
            raise MediaGenerationError("REPLICATE_API_KEY is not set in environment variables")

        client = self._client_factory(provider="replicate", api_key=self.api_key)
        try:
            video = client.text_to_video(params.prompt, model=params.model)
        except Exception as e:
            logger.error("Error generating video: %s", e)
            raise MediaGenerationError(f"Failed to generate video: {e}") from e

        if not video:
            raise MediaGenerationError("Failed to generate video: No result returned")
        encoded = base64.b64encode(video).decode("ascii")
        return f"data:video/mp4;base64,{encoded}"
