"""Editor backend client package.

WHY: Transcription and re-synthesis live on an external backend. This
package keeps every HTTP detail of talking to it in one place.

RULES:
- All backend HTTP calls go through EditorBackendClient
- Authentication is via bearer token from config
"""

from transcript_timeline.api.client import (
    BackendAPIError,
    EditorBackendClient,
    FinalAudioTimeoutError,
)
from transcript_timeline.api.models import AudioEditRequest, AudioRecord, TranscriptionResult

__all__ = [
    "AudioEditRequest",
    "AudioRecord",
    "BackendAPIError",
    "EditorBackendClient",
    "FinalAudioTimeoutError",
    "TranscriptionResult",
]
