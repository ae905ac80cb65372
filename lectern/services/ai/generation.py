"""Text generation against Gemini or OpenAI through the OpenAI SDK.

Gemini is reached through its OpenAI-compatible endpoint, so both providers
share one client type.
"""

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass

from openai import AsyncOpenAI

from lectern.config import settings
from lectern.enums import Provider

# Singleton clients - reused across requests
_clients: dict[Provider, AsyncOpenAI] = {}

# Leading base64 characters of common image formats
_BASE64_SIGNATURES = {
    "iVBOR": "image/png",
    "/9j/": "image/jpeg",
    "R0lGOD": "image/gif",
    "UklGR": "image/webp",
}


@dataclass(frozen=True)
class GenerationResult:
    text: str
    input_tokens: int | None = None
    output_tokens: int | None = None


def get_client(provider: Provider) -> AsyncOpenAI:
    """Get or create the async client for a provider."""
    client = _clients.get(provider)
    if client is None:
        if provider == Provider.GEMINI:
            client = AsyncOpenAI(
                api_key=settings.google_generative_ai_api_key,
                base_url=settings.gemini_base_url,
            )
        else:
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
            )
        _clients[provider] = client
    return client


def guess_image_mime_type(image_base64: str) -> str:
    for signature, mime_type in _BASE64_SIGNATURES.items():
        if image_base64.startswith(signature):
            return mime_type
    return "image/png"


def _messages(prompt: str, system: str | None) -> list[dict]:
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


async def generate_text(
    provider: Provider,
    model: str,
    prompt: str,
    system: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = 50,
) -> GenerationResult:
    """Generate a non-streaming response with token usage."""
    client = get_client(provider)
    response = await client.chat.completions.create(
        model=model,
        messages=_messages(prompt, system),
        temperature=temperature,
        max_tokens=max_tokens,
    )
    usage = response.usage
    return GenerationResult(
        text=response.choices[0].message.content or "",
        input_tokens=usage.prompt_tokens if usage else None,
        output_tokens=usage.completion_tokens if usage else None,
    )


async def stream_image_transcription(
    provider: Provider,
    model: str,
    images_base64: Sequence[str],
    system: str,
    temperature: float = 0.2,
    max_tokens: int = 4096,
) -> AsyncIterator[str]:
    """Stream the transcription of one or more base64 images."""
    client = get_client(provider)
    content = [
        {
            "type": "image_url",
            "image_url": {"url": f"data:{guess_image_mime_type(image)};base64,{image}"},
        }
        for image in images_base64
    ]
    stream = await client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": content},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
        stream=True,
    )
    async for chunk in stream:
        if not chunk.choices:
            continue
        delta = chunk.choices[0].delta
        if delta.content:
            yield delta.content


async def close_clients() -> None:
    """Close all provider clients and release resources."""
    for client in list(_clients.values()):
        await client.close()
    _clients.clear()
