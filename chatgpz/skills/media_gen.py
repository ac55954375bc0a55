"""Image generation via an Automatic1111-compatible Stable Diffusion API."""

import json
import logging

import httpx

from ..core.errors import ConfigurationError, FetchError, InvalidArguments

logger = logging.getLogger("chatgpz.skills.media_gen")

STYLES = ["realistic", "artistic", "anime", "digital-art", "photographic"]

STYLE_PROMPTS = {
    "realistic": "photorealistic, highly detailed, 8k, professional photography",
    "artistic": "artistic, beautiful composition, masterpiece, best quality",
    "anime": "anime style, vibrant colors, clean lines, studio quality",
    "digital-art": "digital art, concept art, detailed illustration",
    "photographic": "DSLR photo, natural lighting, sharp focus, high resolution",
}

DEFAULT_NEGATIVE = "blurry, low quality, distorted"
MAX_SIZE = 1024


async def generate_image(
    ctx,
    prompt: str,
    negative_prompt: str = "",
    width: int = 512,
    height: int = 512,
    style: str = "artistic",
) -> str:
    """
    Generate an image based on a text description. Creates images using AI image generation.

    Args:
        prompt: Detailed description of the image to generate. Be specific about style, colors, composition, etc.
        negative_prompt: Things to avoid in the image (e.g., "blurry, low quality, distorted")
        width: Image width in pixels (default: 512, max: 1024)
        height: Image height in pixels (default: 512, max: 1024)
        style: Art style for the image (default: artistic)
    """
    if not prompt or not prompt.strip():
        raise InvalidArguments("No prompt provided")

    api_url = (ctx.settings.image_api_url or "").rstrip("/")
    if not api_url:
        raise ConfigurationError(
            "Image generation is not configured. Please set the IMAGE_GENERATION_API_URL "
            "environment variable to point to a Stable Diffusion API (e.g., Automatic1111 or ComfyUI)."
        )

    width = min(width or 512, MAX_SIZE)
    height = min(height or 512, MAX_SIZE)
    enhanced = f"{prompt}, {STYLE_PROMPTS.get(style, STYLE_PROMPTS['artistic'])}"

    try:
        response = await ctx.http.post(
            f"{api_url}/sdapi/v1/txt2img",
            json={
                "prompt": enhanced,
                "negative_prompt": negative_prompt or DEFAULT_NEGATIVE,
                "width": width,
                "height": height,
                "steps": 20,
                "cfg_scale": 7,
                "sampler_name": "Euler a",
            },
            timeout=120.0,
        )
    except httpx.TimeoutException:
        raise FetchError("Request timed out (image generation can take up to 2 minutes)")
    except httpx.HTTPError as e:
        raise FetchError(f"Image API request failed: {e}")

    if not response.is_success:
        raise FetchError(f"Image API returned {response.status_code}: {response.reason_phrase}")

    images = response.json().get("images") or []
    if not images:
        raise FetchError("No image was generated")

    logger.info(f"Generated {width}x{height} image ({style})")
    return json.dumps({
        "type": "image",
        "format": "base64",
        "data": images[0],
        "prompt": enhanced,
        "width": width,
        "height": height,
    })


def describe_availability(settings) -> str:
    if settings.image_api_url:
        return "Image generation is available."
    return "NOTE: Image generation is not configured. Set IMAGE_GENERATION_API_URL environment variable."
