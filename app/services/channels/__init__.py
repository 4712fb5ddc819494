from app.services.channels.base import ChannelAdapter
from app.services.channels.builderbot import BuilderbotAdapter
from app.services.channels.elevenlabs import ElevenLabsAdapter


def get_whatsapp_adapter() -> ChannelAdapter:
    return BuilderbotAdapter()


__all__ = ["ChannelAdapter", "BuilderbotAdapter", "ElevenLabsAdapter", "get_whatsapp_adapter"]
