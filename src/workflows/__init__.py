"""
Workflows module - Bulletin generation and audio publishing.
"""
from workflows.audio_queue import AudioQueueProcessor
from workflows.bulletin import BulletinPipeline

__all__ = [
    "AudioQueueProcessor",
    "BulletinPipeline",
]
