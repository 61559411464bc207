import os
import wave

# Lets pygame.mixer open without sound hardware.
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from audio_manager import AudioManager  # noqa: E402


def write_wav(path, frames=22050, channels=2, rate=44100):
    t = np.arange(frames) / rate
    tone = (0.3 * np.sin(2 * np.pi * 220.0 * t) * 32767).astype(np.int16)
    pcm = np.repeat(tone[:, None], channels, axis=1)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(pcm.tobytes())
    return path


@pytest.fixture
def manager():
    am = AudioManager(chunk_frames=2048)
    if not am.is_ready:
        pytest.skip("pygame mixer unavailable")
    yield am
    am.quit()


@pytest.fixture
def beat_wav(tmp_path):
    return str(write_wav(tmp_path / "beat.wav"))
