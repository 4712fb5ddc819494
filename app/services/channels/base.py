from abc import ABC, abstractmethod
from typing import Optional

from app.services.result import Result


class ChannelAdapter(ABC):
    """Outbound delivery to a provider. Implementations never raise on delivery failure."""

    name: str = "channel"

    @abstractmethod
    def send_text(
        self,
        phone: str,
        text: str,
        media_url: Optional[str] = None,
        buttons: Optional[list[dict]] = None,
    ) -> Result[Optional[str]]:
        """Send a text message. Success carries the provider message id when one is returned."""
        pass
