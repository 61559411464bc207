# location_manager.py
import math
import threading
import time

import config


def _nmea_checksum_ok(sentence):
    if "*" not in sentence:
        return True
    body, _, given = sentence.partition("*")
    body = body.lstrip("$!")
    expected = 0
    for ch in body:
        expected ^= ord(ch)
    try:
        return int(given[:2], 16) == expected
    except ValueError:
        return False


def _to_float(field):
    try:
        value = float(field)
    except ValueError:
        return None
    # float() also accepts "inf" and "nan"
    return value if math.isfinite(value) else None


def parse_nmea_speed(sentence):
    """Ground speed in m/s from an RMC or VTG sentence, or None.

    RMC carries knots and a fix status ('V' means no fix). VTG carries both
    knots and km/h; km/h is preferred when present.
    """
    sentence = sentence.strip()
    if not sentence.startswith("$") or not _nmea_checksum_ok(sentence):
        return None

    fields = sentence.split("*")[0].split(",")
    kind = fields[0][3:]

    if kind == "RMC":
        if len(fields) < 8 or fields[2] != "A":
            return None
        knots = _to_float(fields[7])
        if knots is None:
            return None
        return knots * config.KNOTS_TO_METERS_PER_SECOND

    if kind == "VTG":
        if len(fields) > 7 and fields[7]:
            kmh = _to_float(fields[7])
            if kmh is not None:
                return kmh / 3.6
        if len(fields) > 5 and fields[5]:
            knots = _to_float(fields[5])
            if knots is not None:
                return knots * config.KNOTS_TO_METERS_PER_SECOND
        return None

    return None


class SpeedSource:
    """Publishes a non-negative speed in m/s to its subscribers."""

    def __init__(self):
        self.speed_meters_per_second = 0.0
        self.status_text = "Location inactive."
        self._subscribers = []

    @property
    def speed_kilometers_per_hour(self):
        return self.speed_meters_per_second * 3.6

    def subscribe(self, callback):
        self._subscribers.append(callback)

    def start_tracking(self):
        self.status_text = "Tracking enabled."

    def stop_tracking(self):
        self.status_text = "Tracking stopped."

    def _publish(self, speed):
        if not math.isfinite(speed):
            print(f"LOCATION: Ignoring non-finite speed {speed!r}")
            return
        self.speed_meters_per_second = max(0.0, speed)
        for callback in list(self._subscribers):
            callback(self.speed_meters_per_second)


class ManualSpeedSource(SpeedSource):
    """Speed driven by hand, for running without a GPS receiver."""

    def set_speed(self, speed):
        self._publish(float(speed))


class NmeaSpeedSource(SpeedSource):
    def __init__(self, path, replay_interval_s=config.NMEA_REPLAY_INTERVAL_S):
        super().__init__()
        self.path = path
        self.replay_interval_s = replay_interval_s
        self._running = threading.Event()
        self._thread = None

    def start_tracking(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._running.set()
        self.status_text = "Tracking enabled."
        self._thread = threading.Thread(target=self._read_loop, daemon=True)
        self._thread.start()
        print(f"LOCATION: Reading NMEA from {self.path}")

    def stop_tracking(self):
        self._running.clear()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=config.NMEA_THREAD_JOIN_TIMEOUT_S)
            if self._thread.is_alive():
                print("LOCATION: WARNING! NMEA reader thread did not join in time.")
        self._thread = None
        self.status_text = "Tracking stopped."

    def _read_loop(self):
        try:
            with open(self.path, "r", encoding="ascii", errors="replace") as stream:
                for line in stream:
                    if not self._running.is_set():
                        return
                    speed = parse_nmea_speed(line)
                    if speed is None:
                        continue
                    self._publish(speed)
                    if self.replay_interval_s > 0:
                        time.sleep(self.replay_interval_s)
        except OSError as e:
            print(f"LOCATION: Error reading {self.path}: {e}")
            self.status_text = f"Location error: {e}"
            return

        if self._running.is_set():
            self.status_text = "Location stream ended."
            print("LOCATION: NMEA stream ended.")
