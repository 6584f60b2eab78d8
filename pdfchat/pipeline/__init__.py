"""Ingestion pipeline: the coordinator and its progress channel."""

from pdfchat.pipeline.coordinator import IngestionCoordinator
from pdfchat.pipeline.progress_channel import ChannelState, ProgressChannel

__all__ = [
    "ChannelState",
    "IngestionCoordinator",
    "ProgressChannel",
]
