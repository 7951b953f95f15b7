# Real-time Solana ingestion: slot subscription, slot channel, processor.

from solagg.ingestion.channel import SlotChannel
from solagg.ingestion.solana_stream import (
    SLOT_SUBSCRIBE_MSG,
    StreamOutcome,
    process_slot_notifications,
    start_streamer,
    watch_slot_notifications,
)

__all__ = [
    "SLOT_SUBSCRIBE_MSG",
    "SlotChannel",
    "StreamOutcome",
    "process_slot_notifications",
    "start_streamer",
    "watch_slot_notifications",
]
