"""Audio encoding, recording and playback."""

from .encoder import AudioEncoder, decode_pcm_container
from .recorder import AudioRecorder, MicrophoneRecorder
from .playback import SpeechPlayback, SilentPlayback

__all__ = [
    'AudioEncoder',
    'decode_pcm_container',
    'AudioRecorder',
    'MicrophoneRecorder',
    'SpeechPlayback',
    'SilentPlayback',
]
