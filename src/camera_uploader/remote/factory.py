"""Remote client factory for creating the configured storage client."""

from typing import Dict, Any, Type, List, Optional

from ..config.settings import AppSettings, get_settings
from .base import BaseRemoteClient
from .google_drive import GoogleDriveClient


class RemoteClientFactory:
    """Factory for creating remote client instances."""

    _client_classes: Dict[str, Type[BaseRemoteClient]] = {
        "google_drive": GoogleDriveClient,
    }

    @classmethod
    def create_client(
        cls,
        provider: Optional[str] = None,
        settings: Optional[AppSettings] = None,
        **kwargs: Any
    ) -> BaseRemoteClient:
        """Create a remote client instance.

        Args:
            provider: Registered provider name; defaults to ``REMOTE_PROVIDER``
            settings: Settings to configure the client from
            **kwargs: Extra constructor arguments

        Raises:
            ValueError: If the provider is not registered
        """
        settings = settings or get_settings()
        provider = provider or settings.remote.provider

        if provider not in cls._client_classes:
            raise ValueError(f"Unsupported remote provider: {provider}")

        if provider == "google_drive":
            kwargs.setdefault("application_name", settings.google_drive.application_name)
            kwargs.setdefault("page_size", settings.google_drive.page_size)

        return cls._client_classes[provider](**kwargs)

    @classmethod
    def get_supported_providers(cls) -> List[str]:
        return list(cls._client_classes.keys())

    @classmethod
    def register_client(cls, provider: str, client_class: Type[BaseRemoteClient]):
        """Register a new remote client type."""
        cls._client_classes[provider] = client_class
