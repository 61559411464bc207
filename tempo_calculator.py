# tempo_calculator.py
"""Maps movement speed onto a loop tempo and a playback-rate multiplier.

Inputs are not validated: anything out of the UI ranges flows through the
arithmetic and is clamped on the way out.
"""
import config

DEFAULT_TEMPO = config.DEFAULT_TEMPO
DEFAULT_SPEED_FACTOR = config.DEFAULT_SPEED_FACTOR

MIN_TEMPO = 40.0
MAX_TEMPO = 200.0
MIN_RATE = 0.5
MAX_RATE = 2.0


def _clamp(value, lo, hi):
    return min(max(value, lo), hi)


def compute_tempo(base_tempo, speed, speed_factor):
    """BPM for the current speed: base tempo plus speed * factor, in [40, 200]."""
    new_tempo = base_tempo + (speed * speed_factor)
    return _clamp(new_tempo, MIN_TEMPO, MAX_TEMPO)


def compute_rate(tempo, base_tempo):
    """Playback multiplier that turns base_tempo into tempo, in [0.5, 2.0]."""
    if base_tempo <= 0:
        return 1.0
    rate = tempo / base_tempo
    return _clamp(rate, MIN_RATE, MAX_RATE)
