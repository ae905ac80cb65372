"""Resolve which provider and model an AI request should address."""

from dataclasses import dataclass

from lectern.config import settings
from lectern.enums import Provider

DEFAULT_MODELS = {
    Provider.GEMINI: "gemini-2.0-flash",
    Provider.OPENAI: "gpt-4o-mini",
}

MODEL_PREFIXES = {
    "openai": Provider.OPENAI,
    "google": Provider.GEMINI,
    "gemini": Provider.GEMINI,
}


@dataclass(frozen=True)
class ResolvedProvider:
    provider: Provider
    model: str


def available_keys() -> set[Provider]:
    """Providers whose credential is configured."""
    keys = set()
    if settings.google_generative_ai_api_key:
        keys.add(Provider.GEMINI)
    if settings.openai_api_key:
        keys.add(Provider.OPENAI)
    return keys


def default_model(provider: Provider) -> str:
    if provider == Provider.GEMINI:
        return settings.gemini_default_model or DEFAULT_MODELS[provider]
    return settings.openai_default_model or DEFAULT_MODELS[provider]


def resolve_provider(
    requested_model: str | None,
    requested_provider: str | None,
    keys: set[Provider],
    service_defaults: dict[Provider, str] | None = None,
) -> ResolvedProvider:
    """
    Pick provider and model for a request. Never raises.

    A ``prefix/name`` model forces the provider for known prefixes; unknown
    prefixes discard the model. When the chosen provider has no credential
    but the other one does, the request is moved over and any explicit model
    is dropped since it may not exist there.

    Args:
        requested_model: Model asked for by the caller, optionally prefixed
        requested_provider: Provider asked for by the caller
        keys: Providers with a configured credential
        service_defaults: Models configured for the calling service, per provider

    Returns:
        ResolvedProvider with the provider and final model name
    """
    provider: Provider | None = None
    model = requested_model or None

    if model and "/" in model:
        prefix, _, name = model.partition("/")
        provider = MODEL_PREFIXES.get(prefix)
        model = (name or None) if provider else None

    if provider is None and requested_provider in (Provider.OPENAI, Provider.GEMINI):
        provider = Provider(requested_provider)

    if provider is None:
        provider = Provider.GEMINI if Provider.GEMINI in keys else Provider.OPENAI

    other = Provider.GEMINI if provider == Provider.OPENAI else Provider.OPENAI
    if provider not in keys and other in keys:
        provider = other
        model = None

    if not model:
        model = (service_defaults or {}).get(provider) or default_model(provider)

    return ResolvedProvider(provider=provider, model=model)
