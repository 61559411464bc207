# time_stretch.py
"""
Streaming overlap-add time stretch over a looping buffer.

Grains of ``frame_size`` frames are read from the loop, Hann-windowed and
summed at a fixed synthesis hop. The read position advances by
``hop * rate`` per grain, so tempo follows the rate while each grain plays at
its original speed and pitch is kept. The position wraps at the loop end and
is never reset by a rate change.
"""
import numpy as np

import tempo_calculator


class LoopTimeStretcher:
    def __init__(self, samples, frame_size=2048, hop=512):
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples[:, None]
        if samples.shape[0] == 0:
            raise ValueError("Cannot stretch an empty buffer.")
        if frame_size % hop != 0:
            raise ValueError(f"frame_size ({frame_size}) must be a multiple of hop ({hop}).")

        self.samples = samples
        self.channels = samples.shape[1]
        self.frame_size = int(frame_size)
        self.hop = int(hop)
        self.rate = 1.0
        self.position = 0.0

        # Periodic Hann sums to frame_size / (2 * hop) at this overlap.
        n = np.arange(self.frame_size, dtype=np.float32)
        self.window = (0.5 - 0.5 * np.cos(2.0 * np.pi * n / self.frame_size)).astype(np.float32)
        self._norm = (2.0 * self.hop) / self.frame_size

        self._accum = np.zeros((self.frame_size, self.channels), dtype=np.float32)
        self._pending = np.zeros((0, self.channels), dtype=np.float32)

    @property
    def loop_frames(self):
        return self.samples.shape[0]

    def set_rate(self, rate):
        self.rate = min(max(float(rate), tempo_calculator.MIN_RATE), tempo_calculator.MAX_RATE)

    def reset(self):
        self.position = 0.0
        self._accum.fill(0.0)
        self._pending = np.zeros((0, self.channels), dtype=np.float32)

    def _read_grain(self, start):
        idx = (start + np.arange(self.frame_size)) % self.loop_frames
        return self.samples[idx]

    def _step(self):
        grain = self._read_grain(int(self.position)) * self.window[:, None]
        self._accum += grain
        out = self._accum[:self.hop].copy() * self._norm

        self._accum[:-self.hop] = self._accum[self.hop:]
        self._accum[-self.hop:] = 0.0
        self.position = (self.position + self.hop * self.rate) % self.loop_frames
        return out

    def render(self, frames):
        """Return exactly ``frames`` stretched frames as float32 (frames, channels)."""
        blocks = [self._pending] if self._pending.shape[0] else []
        have = self._pending.shape[0]
        while have < frames:
            block = self._step()
            blocks.append(block)
            have += block.shape[0]

        if not blocks:
            return np.zeros((0, self.channels), dtype=np.float32)
        out = np.concatenate(blocks, axis=0)
        self._pending = out[frames:]
        return out[:frames]
