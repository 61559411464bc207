# config.py
# --- Audio Files ---
SUPPORTED_AUDIO_TYPES = [
    ("Audio loops", "*.wav *.ogg *.mp3 *.flac *.aif *.aiff"),
    ("All files", "*.*"),
]

# --- Tempo ---
DEFAULT_TEMPO = 72.0
DEFAULT_SPEED_FACTOR = 4.0

# Slider/stepper bounds. The calculator itself does not enforce these.
BASE_TEMPO_MIN = 40
BASE_TEMPO_MAX = 140
BASE_TEMPO_STEP = 1
SPEED_FACTOR_MIN = 0.0
SPEED_FACTOR_MAX = 12.0
SPEED_FACTOR_STEP = 0.5

# Manual speed slider (m/s), used when no GPS feed is configured
MANUAL_SPEED_MAX = 15.0

# --- Time Stretch ---
STRETCH_FRAME_SIZE = 2048
STRETCH_HOP_SIZE = 512
CHUNK_FRAMES = 4096 # ~93 ms at 44.1 kHz, rate changes land on the next chunk

# --- Pygame Mixer Settings ---
MIXER_FREQUENCY = 44100
MIXER_SIZE = -16
MIXER_CHANNELS = 2
MIXER_BUFFER_SIZE = 1024
NUM_AUDIO_CHANNELS = 2
LOOP_CHANNEL_INDEX = 0
LOOP_VOLUME = 0.9

# --- Location / Speed ---
KNOTS_TO_METERS_PER_SECOND = 0.514444
NMEA_REPLAY_INTERVAL_S = 0.0 # 0 reads a live device as fast as it delivers
NMEA_THREAD_JOIN_TIMEOUT_S = 2.0

# --- App Loop ---
TARGET_FPS = 60
