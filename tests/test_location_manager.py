import time
from functools import reduce

import pytest

from location_manager import ManualSpeedSource, NmeaSpeedSource, parse_nmea_speed
from tempo_state import TempoState


def _sentence(body):
    checksum = reduce(lambda acc, ch: acc ^ ord(ch), body, 0)
    return f"${body}*{checksum:02X}"


RMC_FIX = _sentence("GPRMC,123519,A,4807.038,N,01131.000,E,10.0,084.4,230394,003.1,W")
RMC_NO_FIX = _sentence("GPRMC,123519,V,4807.038,N,01131.000,E,10.0,084.4,230394,003.1,W")
VTG_KMH = _sentence("GPVTG,054.7,T,034.4,M,005.5,N,010.2,K")
VTG_KNOTS_ONLY = _sentence("GNVTG,054.7,T,034.4,M,005.5,N,,K")


def test_rmc_knots_to_meters_per_second():
    assert parse_nmea_speed(RMC_FIX) == pytest.approx(5.14444)


def test_rmc_without_fix_is_ignored():
    assert parse_nmea_speed(RMC_NO_FIX) is None


def test_vtg_prefers_kmh():
    assert parse_nmea_speed(VTG_KMH) == pytest.approx(10.2 / 3.6)


def test_vtg_falls_back_to_knots():
    assert parse_nmea_speed(VTG_KNOTS_ONLY) == pytest.approx(5.5 * 0.514444)


def test_bad_checksum_is_rejected():
    assert parse_nmea_speed(RMC_FIX.replace(",10.0,", ",11.0,")) is None


@pytest.mark.parametrize("line", [
    "",
    "garbage",
    _sentence("GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,"),
    _sentence("GPRMC,123519,A,4807.038,N,01131.000,E,,084.4,230394,003.1,W"),
    _sentence("GPRMC,123519,A"),
])
def test_unusable_sentences(line):
    assert parse_nmea_speed(line) is None


def test_manual_source_publishes_non_negative_speed():
    source = ManualSpeedSource()
    seen = []
    source.subscribe(seen.append)

    source.set_speed(2.5)
    source.set_speed(-1.0)

    assert seen == [2.5, 0.0]
    assert source.speed_meters_per_second == 0.0


def test_kilometers_per_hour():
    source = ManualSpeedSource()
    source.set_speed(10.0)
    assert source.speed_kilometers_per_hour == pytest.approx(36.0)


def test_manual_source_status():
    source = ManualSpeedSource()
    assert source.status_text == "Location inactive."
    source.start_tracking()
    assert source.status_text == "Tracking enabled."
    source.stop_tracking()
    assert source.status_text == "Tracking stopped."


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_nmea_source_reads_log(tmp_path):
    log = tmp_path / "ride.nmea"
    log.write_text("\n".join([RMC_FIX, "noise", RMC_NO_FIX, VTG_KMH]) + "\n")

    source = NmeaSpeedSource(str(log), replay_interval_s=0)
    seen = []
    source.subscribe(seen.append)
    source.start_tracking()

    assert _wait_for(lambda: source.status_text == "Location stream ended.")
    assert seen == [pytest.approx(5.14444), pytest.approx(10.2 / 3.6)]
    assert source.speed_meters_per_second == pytest.approx(10.2 / 3.6)

    source.stop_tracking()
    assert source.status_text == "Tracking stopped."


def test_nmea_source_reports_missing_device(tmp_path):
    source = NmeaSpeedSource(str(tmp_path / "missing"), replay_interval_s=0)
    source.start_tracking()
    assert _wait_for(lambda: source.status_text.startswith("Location error:"))
    source.stop_tracking()


@pytest.mark.parametrize("field", ["inf", "-inf", "nan", "Infinity"])
def test_non_finite_rmc_speed_is_rejected(field):
    line = _sentence(f"GPRMC,123519,A,4807.038,N,01131.000,E,{field},084.4,230394,003.1,W")
    assert parse_nmea_speed(line) is None


@pytest.mark.parametrize("field", ["inf", "-inf", "nan"])
def test_non_finite_vtg_speed_is_rejected(field):
    assert parse_nmea_speed(_sentence(f"GPVTG,054.7,T,034.4,M,{field},N,{field},K")) is None


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
def test_manual_source_drops_non_finite_speed(value):
    source = ManualSpeedSource()
    seen = []
    source.subscribe(seen.append)
    source.set_speed(2.0)

    source.set_speed(value)

    assert seen == [2.0]
    assert source.speed_meters_per_second == 2.0


def test_infinite_fix_does_not_reach_tempo(tmp_path):
    log = tmp_path / "ride.nmea"
    bad = _sentence("GPRMC,123519,A,4807.038,N,01131.000,E,inf,084.4,230394,003.1,W")
    log.write_text("\n".join([bad, RMC_FIX]) + "\n")

    state = TempoState(speed_factor=0)
    source = NmeaSpeedSource(str(log), replay_interval_s=0)
    source.subscribe(state.set_speed)
    source.start_tracking()

    assert _wait_for(lambda: source.status_text == "Location stream ended.")
    source.stop_tracking()
    reading = state.snapshot()
    assert reading.speed == pytest.approx(5.14444)
    assert reading.tempo == 72.0
    assert reading.rate == 1.0
