"""Data providers: each implements the async topic/book queries the cache and TOC loader need."""

from hadith_library.models import LibrarySettings
from hadith_library.providers.base import DataProvider, TransientFetchError
from hadith_library.providers.memory import MemoryProvider
from hadith_library.providers.postgrest import PostgrestProvider

__all__ = [
    "DataProvider",
    "MemoryProvider",
    "PostgrestProvider",
    "TransientFetchError",
    "REGISTRY",
    "get_provider",
    "create_provider",
]

REGISTRY: dict[str, type[DataProvider]] = {
    "postgrest": PostgrestProvider,
    "memory": MemoryProvider,
}


def get_provider(name: str) -> type[DataProvider]:
    """Return provider class for the given name. Raises KeyError if unknown."""
    if name not in REGISTRY:
        raise KeyError(f"Unknown provider: {name}. Available: {list(REGISTRY)}")
    return REGISTRY[name]


def create_provider(settings: LibrarySettings) -> DataProvider:
    """Instantiate the configured provider. Raises ValueError when required settings are missing."""
    provider_cls = get_provider(settings.provider)
    if provider_cls is MemoryProvider:
        if settings.data_path is None:
            return MemoryProvider()
        return MemoryProvider.from_json(settings.data_path)
    return PostgrestProvider(
        settings.supabase_url or "",
        settings.supabase_key or "",
        timeout=settings.request_timeout,
    )
