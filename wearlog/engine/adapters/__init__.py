"""Activity providers for wearlog.

Each provider implements the ActivityProvider ABC and returns hourly
step/distance samples for a local calendar day.

Available providers:
    StaticActivityProvider     in-memory samples (default, tests)
    HttpActivityProvider       JSON endpoint via httpx
    AppleHealthExportProvider  Apple Health export.xml, bucketed by hour
"""

from wearlog.engine.adapters.apple_health import AppleHealthExportProvider
from wearlog.engine.adapters.http_json import HttpActivityProvider
from wearlog.engine.adapters.static import StaticActivityProvider

__all__ = [
    "StaticActivityProvider",
    "HttpActivityProvider",
    "AppleHealthExportProvider",
]

# Registry: source_id → provider class
PROVIDER_REGISTRY: dict[str, type] = {
    "static": StaticActivityProvider,
    "http": HttpActivityProvider,
    "apple_health": AppleHealthExportProvider,
}


def get_provider(source_id: str) -> "type":
    """Return the provider class for a given source slug.

    Raises:
        KeyError: If the source_id is not registered.
    """
    if source_id not in PROVIDER_REGISTRY:
        raise KeyError(
            f"No provider registered for source '{source_id}'. "
            f"Available: {list(PROVIDER_REGISTRY)}"
        )
    return PROVIDER_REGISTRY[source_id]
