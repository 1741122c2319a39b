"""Service interfaces (Protocols) for EquiLens.

These protocols define the contracts that service implementations must follow.
This allows for easy swapping of implementations and better testability.
"""

from collections.abc import Callable
from typing import Any, Protocol


class IRemoteFileService(Protocol):
    """Interface for the remote upload + analysis endpoint."""

    async def start_upload(self, display_name: str, total_bytes: int, mime_type: str) -> str:
        """Negotiate a resumable upload.

        Args:
            display_name: Name shown by the remote service
            total_bytes: Declared total length
            mime_type: Declared content type

        Returns:
            Opaque upload URL
        """
        ...

    async def upload_chunk(
        self,
        upload_url: str,
        offset: int,
        data: bytes,
        finalize: bool,
    ) -> dict[str, Any] | None:
        """Send one offset-addressed chunk.

        Returns:
            The remote ``file`` object when ``finalize`` is set, else None
        """
        ...

    async def get_file(self, name: str) -> dict[str, Any]:
        """Return the status document for a remote file."""
        ...

    async def generate_content(self, body: dict[str, Any]) -> dict[str, Any]:
        """Submit a model request and return the decoded response."""
        ...


class IMediaEngine(Protocol):
    """Interface for the transcoding engine and its working storage."""

    @property
    def loaded(self) -> bool:
        ...

    async def load(self) -> None:
        ...

    async def write_file(self, name: str, data: bytes) -> None:
        ...

    async def read_file(self, name: str) -> bytes:
        ...

    async def delete_file(self, name: str) -> None:
        ...

    async def exec(
        self,
        args: list[str],
        on_ratio: Callable[[float], None] | None = None,
        duration_seconds: float | None = None,
    ) -> None:
        ...
