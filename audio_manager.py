# audio_manager.py
import os
import threading

import numpy as np
import pygame

import config
import tempo_calculator
from time_stretch import LoopTimeStretcher


class AudioManager:
    def __init__(self, mixer_frequency=config.MIXER_FREQUENCY, mixer_size=config.MIXER_SIZE,
                 mixer_channels=config.MIXER_CHANNELS, mixer_buffer=config.MIXER_BUFFER_SIZE,
                 num_audio_channels=config.NUM_AUDIO_CHANNELS, loop_volume=config.LOOP_VOLUME,
                 chunk_frames=config.CHUNK_FRAMES, frame_size=config.STRETCH_FRAME_SIZE,
                 hop_size=config.STRETCH_HOP_SIZE):

        self._lock = threading.Lock()
        self.is_playing = False
        self.current_track_name = "No track loaded"
        self.status_text = "Import a rhythmic loop to begin."
        self.current_tempo = tempo_calculator.DEFAULT_TEMPO
        self.current_rate = 1.0

        self.loop_channel = None
        self.stretcher = None
        self.loop_volume = loop_volume
        self.chunk_frames = chunk_frames
        self.frame_size = frame_size
        self.hop_size = hop_size
        self.mixer_channels = mixer_channels

        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init(
                    frequency=mixer_frequency,
                    size=mixer_size,
                    channels=mixer_channels,
                    buffer=mixer_buffer
                )

            if pygame.mixer.get_num_channels() < num_audio_channels:
                pygame.mixer.set_num_channels(num_audio_channels)

        except pygame.error as e:
            print(f"AUDIO_MAN: FATAL Error initializing pygame.mixer: {e}")
            self.status_text = f"Audio engine error: {e}"
            return

        # The mixer may have been opened with a different layout than asked for.
        self.mixer_channels = pygame.mixer.get_init()[2]
        self.loop_channel = pygame.mixer.Channel(config.LOOP_CHANNEL_INDEX)
        self.loop_channel.set_volume(self.loop_volume)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.quit()
        return False

    @property
    def is_ready(self):
        return pygame.mixer.get_init() is not None and self.loop_channel is not None

    def load_audio(self, path):
        self.stop()
        if not self.is_ready:
            self.set_error("Audio engine is not available.")
            return False
        if not os.path.exists(path):
            self.set_error(f"Failed to load audio: file not found: {path}")
            return False

        try:
            sound = pygame.mixer.Sound(path)
            if sound.get_length() <= 0:
                raise ValueError("file contains no audio")
            samples = pygame.sndarray.array(sound)
            stretcher = LoopTimeStretcher(
                self._to_float(samples), frame_size=self.frame_size, hop=self.hop_size
            )
        except (pygame.error, ValueError, OSError) as e:
            print(f"AUDIO_MAN: Error loading loop from {path}: {e}")
            self.set_error(f"Failed to load audio: {e}")
            return False

        stretcher.set_rate(self.current_rate)
        self.stretcher = stretcher
        self.current_track_name = os.path.basename(path)
        self.status_text = "Ready to play."
        print(f"AUDIO_MAN: Loaded '{self.current_track_name}' ({stretcher.loop_frames} frames).")
        return True

    def toggle_playback(self):
        if self.is_playing:
            self.stop()
            return True
        return self.play()

    def play(self):
        if self.stretcher is None:
            self.set_error("Please import a loopable audio file first.")
            return False
        if not self.is_ready:
            self.set_error("Audio engine is not available.")
            return False

        with self._lock:
            if not self.is_playing:
                self.is_playing = True
                self._feed()
                self.status_text = "Playing in loop."
        return True

    def stop(self):
        with self._lock:
            self.is_playing = False
            if self.loop_channel is not None and pygame.mixer.get_init():
                self.loop_channel.stop()
        self.status_text = "Stopped."

    def apply_tempo(self, tempo, rate):
        self.current_tempo = tempo
        self.current_rate = rate
        if self.stretcher is not None:
            self.stretcher.set_rate(rate)
        if self.is_playing:
            self.status_text = f"Playing at {round(tempo)} BPM."

    def set_error(self, message):
        self.status_text = message

    def update(self):
        # Serialized with stop(), which runs on the UI thread.
        with self._lock:
            if not self.is_playing or not self.is_ready:
                return
            self._feed()

    def _feed(self):
        # One chunk sounding and one queued behind it keeps the loop gapless.
        if not self.loop_channel.get_busy():
            self.loop_channel.play(self._next_chunk())
        if self.loop_channel.get_queue() is None:
            self.loop_channel.queue(self._next_chunk())

    def _next_chunk(self):
        block = self.stretcher.render(self.chunk_frames)
        return pygame.sndarray.make_sound(self._to_mixer_format(block))

    def _to_float(self, samples):
        samples = np.asarray(samples)
        if samples.ndim == 1:
            samples = samples[:, None]
        if np.issubdtype(samples.dtype, np.integer):
            scale = float(np.iinfo(samples.dtype).max) + 1.0
            return samples.astype(np.float32) / scale
        return samples.astype(np.float32)

    def _to_mixer_format(self, block):
        pcm = (np.clip(block, -1.0, 1.0) * 32767.0).astype(np.int16)
        if self.mixer_channels == 1:
            pcm = pcm.mean(axis=1).astype(np.int16)
        elif pcm.shape[1] != self.mixer_channels:
            pcm = np.repeat(pcm[:, :1], self.mixer_channels, axis=1)
        return np.ascontiguousarray(pcm)

    def quit(self):
        if pygame.mixer.get_init():
            self.stop()
            pygame.mixer.quit()
        self.loop_channel = None
