# tempo_state.py
import threading
from dataclasses import dataclass

import tempo_calculator


@dataclass(frozen=True)
class TempoReading:
    base_tempo: float
    speed_factor: float
    speed: float
    tempo: float
    rate: float


class TempoState:
    """Owns the three tempo inputs and republishes tempo/rate on every change.

    Subscribers are called synchronously on the thread that made the change.
    Renderers that live on another thread should poll snapshot() instead.
    """

    def __init__(self, base_tempo=tempo_calculator.DEFAULT_TEMPO,
                 speed_factor=tempo_calculator.DEFAULT_SPEED_FACTOR, speed=0.0):
        self._lock = threading.RLock()
        self._subscribers = []
        self._base_tempo = float(base_tempo)
        self._speed_factor = float(speed_factor)
        self._speed = float(speed)
        self._reading = self._compute()

    def subscribe(self, callback):
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def snapshot(self):
        with self._lock:
            return self._reading

    def set_base_tempo(self, base_tempo):
        with self._lock:
            self._base_tempo = float(base_tempo)
            return self._publish()

    def set_speed_factor(self, speed_factor):
        with self._lock:
            self._speed_factor = float(speed_factor)
            return self._publish()

    def set_speed(self, speed):
        with self._lock:
            self._speed = float(speed)
            return self._publish()

    def _compute(self):
        tempo = tempo_calculator.compute_tempo(self._base_tempo, self._speed, self._speed_factor)
        rate = tempo_calculator.compute_rate(tempo, self._base_tempo)
        return TempoReading(
            base_tempo=self._base_tempo,
            speed_factor=self._speed_factor,
            speed=self._speed,
            tempo=tempo,
            rate=rate,
        )

    def _publish(self):
        self._reading = self._compute()
        reading = self._reading
        for callback in list(self._subscribers):
            try:
                callback(reading)
            except Exception as e:
                print(f"TEMPO: Subscriber {callback!r} failed: {e}")
        return reading
