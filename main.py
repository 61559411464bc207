# main.py
import argparse
import threading
import time
import tkinter as tk
import traceback
from tkinter import filedialog, ttk

import pygame

import config
from audio_manager import AudioManager
from location_manager import ManualSpeedSource, NmeaSpeedSource
from tempo_state import TempoState


def clamp_base_tempo(value):
    """Whole BPM within the stepper range."""
    return float(max(config.BASE_TEMPO_MIN, min(config.BASE_TEMPO_MAX, round(value))))


def snap_speed_factor(value):
    """Nearest slider step within the speed-influence range."""
    step = config.SPEED_FACTOR_STEP
    value = max(config.SPEED_FACTOR_MIN, min(config.SPEED_FACTOR_MAX, value))
    return round(value / step) * step


def bind_playback(tempo_state, audio_manager):
    """Route every tempo reading to the player, starting with the current one."""
    unsubscribe = tempo_state.subscribe(lambda reading: audio_manager.apply_tempo(reading.tempo, reading.rate))
    reading = tempo_state.snapshot()
    audio_manager.apply_tempo(reading.tempo, reading.rate)
    return unsubscribe


class App:
    def __init__(self, root, loop_file=None, nmea_path=None,
                 replay_interval_s=config.NMEA_REPLAY_INTERVAL_S):
        self.root = root
        self.root.title("Adaptive Loop Player")
        self.root.geometry("440x520")

        self.running = True
        self.audio_manager = None
        self.initial_loop_file = loop_file

        self.tempo_state = TempoState()
        if nmea_path:
            self.speed_source = NmeaSpeedSource(nmea_path, replay_interval_s=replay_interval_s)
        else:
            self.speed_source = ManualSpeedSource()
        self.speed_source.subscribe(self.tempo_state.set_speed)

        self.base_tempo_var = tk.DoubleVar(value=config.DEFAULT_TEMPO)
        self.speed_factor_var = tk.DoubleVar(value=config.DEFAULT_SPEED_FACTOR)
        self._init_ui()

        print("MAIN_APP: Initializing and starting playback thread...")
        self.update_thread = threading.Thread(target=self._update_init_and_loop, daemon=True)
        self.update_thread.start()

        self.speed_source.start_tracking()
        self.root.protocol("WM_DELETE_WINDOW", self._on_closing)

    def _init_ui(self):
        # --- Audio ---
        audio_frame = ttk.LabelFrame(self.root, text="Audio")
        audio_frame.pack(fill=tk.X, padx=10, pady=8)

        self.track_label = ttk.Label(audio_frame, text="No track loaded", font=("Arial", 11, "bold"))
        self.track_label.pack(anchor=tk.W, padx=8)
        self.status_label = ttk.Label(audio_frame, text="Initializing...", font=("Arial", 9))
        self.status_label.pack(anchor=tk.W, padx=8)

        button_frame = ttk.Frame(audio_frame)
        button_frame.pack(pady=6)
        self.import_button = ttk.Button(button_frame, text="Import", command=self._import_audio, state=tk.DISABLED)
        self.import_button.pack(side=tk.LEFT, padx=6)
        self.play_button = ttk.Button(button_frame, text="Play", command=self._toggle_playback, state=tk.DISABLED)
        self.play_button.pack(side=tk.LEFT, padx=6)

        # --- Tempo ---
        tempo_frame = ttk.LabelFrame(self.root, text="Tempo")
        tempo_frame.pack(fill=tk.X, padx=10, pady=8)

        ttk.Label(tempo_frame, text="Base Tempo (BPM)").pack(anchor=tk.W, padx=8)
        self.base_tempo_spinbox = ttk.Spinbox(
            tempo_frame, from_=config.BASE_TEMPO_MIN, to=config.BASE_TEMPO_MAX,
            increment=config.BASE_TEMPO_STEP, textvariable=self.base_tempo_var,
            width=6, command=self._on_base_tempo_change
        )
        self.base_tempo_spinbox.bind("<Return>", lambda _e: self._on_base_tempo_change())
        self.base_tempo_spinbox.bind("<FocusOut>", lambda _e: self._on_base_tempo_change())
        self.base_tempo_spinbox.pack(anchor=tk.W, padx=8, pady=4)

        ttk.Label(tempo_frame, text="Speed Influence").pack(anchor=tk.W, padx=8)
        self.speed_factor_slider = ttk.Scale(
            tempo_frame, from_=config.SPEED_FACTOR_MIN, to=config.SPEED_FACTOR_MAX,
            orient=tk.HORIZONTAL, length=300, variable=self.speed_factor_var,
            command=self._on_speed_factor_change
        )
        self.speed_factor_slider.pack(padx=8)
        self.speed_factor_label = ttk.Label(tempo_frame, text="")
        self.speed_factor_label.pack(anchor=tk.W, padx=8)

        self.tempo_label = ttk.Label(tempo_frame, text="Live Tempo: -- BPM", font=("Arial", 16))
        self.tempo_label.pack(pady=8)

        # --- Location & Speed ---
        location_frame = ttk.LabelFrame(self.root, text="Location & Speed")
        location_frame.pack(fill=tk.X, padx=10, pady=8)

        self.location_status_label = ttk.Label(location_frame, text="Location inactive.")
        self.location_status_label.pack(anchor=tk.W, padx=8)
        self.speed_label = ttk.Label(location_frame, text="0.00 m/s    0.0 km/h", font=("Arial", 12))
        self.speed_label.pack(anchor=tk.W, padx=8, pady=4)

        self.manual_speed_slider = None
        if isinstance(self.speed_source, ManualSpeedSource):
            ttk.Label(location_frame, text="Manual Speed (m/s)").pack(anchor=tk.W, padx=8)
            self.manual_speed_slider = ttk.Scale(
                location_frame, from_=0, to=config.MANUAL_SPEED_MAX, orient=tk.HORIZONTAL,
                length=300, command=self._on_manual_speed_change
            )
            self.manual_speed_slider.set(0)
            self.manual_speed_slider.pack(padx=8, pady=4)

        self._update_speed_factor_label(self.speed_factor_var.get())

    def _update_init_and_loop(self):
        print("SIM_THREAD: _update_init_and_loop started.")
        try:
            self.root.after(0, lambda: self.status_label.config(text="Initializing Audio..."))
            self.audio_manager = AudioManager()

            if not self.audio_manager.is_ready:
                print("SIM_THREAD: Pygame Mixer not initialized. Disabling playback controls.")
                self.root.after(0, lambda: self.status_label.config(text="ERROR: Pygame Mixer failed. No audio."))
                # Tempo and speed still change without audio; keep the labels live.
                while self.running:
                    self.root.after(0, self._update_gui_data)
                    time.sleep(0.1)
                return

            bind_playback(self.tempo_state, self.audio_manager)

            if self.initial_loop_file:
                self.audio_manager.load_audio(self.initial_loop_file)

            self.root.after(0, lambda: self.import_button.config(state=tk.NORMAL))
            self.root.after(0, lambda: self.play_button.config(state=tk.NORMAL))

            print("SIM_THREAD: Entering main playback loop...")
            target_sleep_time = 1.0 / config.TARGET_FPS

            while self.running:
                loop_start_time = time.perf_counter()

                self.audio_manager.update()
                self.root.after(0, self._update_gui_data)

                processing_time = time.perf_counter() - loop_start_time
                sleep_time = target_sleep_time - processing_time
                if sleep_time > 0:
                    time.sleep(sleep_time)
            print("SIM_THREAD: Exited main playback loop because self.running is False.")

        except Exception:
            print("SIM_THREAD: ***** EXCEPTION IN PLAYBACK THREAD *****")
            traceback.print_exc()
            try:
                self.root.after(0, lambda: self.status_label.config(text="ERROR IN PLAYBACK THREAD! See console."))
            except (tk.TclError, RuntimeError):
                pass

        finally:
            print("SIM_THREAD: Starting cleanup...")
            if self.audio_manager:
                self.audio_manager.quit()

    def _import_audio(self):
        path = filedialog.askopenfilename(title="Import a rhythmic loop", filetypes=config.SUPPORTED_AUDIO_TYPES)
        if not path or not self.audio_manager:
            return
        self.audio_manager.load_audio(path)
        self._update_gui_data()

    def _toggle_playback(self):
        if self.audio_manager:
            self.audio_manager.toggle_playback()
        self._update_gui_data()

    def _on_base_tempo_change(self):
        try:
            value = float(self.base_tempo_var.get())
        except (tk.TclError, ValueError):
            return
        value = clamp_base_tempo(value)
        self.base_tempo_var.set(value)
        self.tempo_state.set_base_tempo(value)

    def _on_speed_factor_change(self, value_str):
        value = snap_speed_factor(float(value_str))
        self._update_speed_factor_label(value)
        if value != self.tempo_state.snapshot().speed_factor:
            self.tempo_state.set_speed_factor(value)

    def _on_manual_speed_change(self, value_str):
        self.speed_source.set_speed(float(value_str))

    def _update_speed_factor_label(self, value):
        self.speed_factor_label.config(text=f"+{value:.1f} BPM per m/s")

    def _update_gui_data(self):
        if not self.running:
            return

        try:
            reading = self.tempo_state.snapshot()
            self.tempo_label.config(text=f"Live Tempo: {round(reading.tempo)} BPM")
            self.location_status_label.config(text=self.speed_source.status_text)
            self.speed_label.config(
                text=f"{self.speed_source.speed_meters_per_second:.2f} m/s    "
                     f"{self.speed_source.speed_kilometers_per_hour:.1f} km/h"
            )

            if self.audio_manager:
                self.track_label.config(text=self.audio_manager.current_track_name)
                if not self.status_label["text"].startswith("ERROR"):
                    self.status_label.config(text=self.audio_manager.status_text)
                self.play_button.config(text="Stop" if self.audio_manager.is_playing else "Play")

        except tk.TclError:
            pass

    def _on_closing(self):
        print("MAIN_APP: _on_closing called. Setting self.running to False.")
        self.running = False
        self.speed_source.stop_tracking()
        if self.update_thread.is_alive():
            print("MAIN_APP: Waiting for playback thread to join...")
            self.update_thread.join(timeout=5)
            if self.update_thread.is_alive():
                print("MAIN_APP: WARNING! Playback thread did not join in time.")
        self.root.destroy()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Play a loop whose tempo follows your movement speed.")
    parser.add_argument("--loop", help="Audio loop to load at startup.")
    parser.add_argument("--nmea", help="NMEA 0183 source (log file or serial device) for speed. "
                                       "Without it, speed is set by hand.")
    parser.add_argument("--replay-interval", type=float, default=config.NMEA_REPLAY_INTERVAL_S,
                        help="Seconds to wait between NMEA fixes when replaying a log.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    pygame.init()
    print("MAIN_APP: Pygame initialized (pygame.init()).")

    main_root = tk.Tk()
    App(main_root, loop_file=args.loop, nmea_path=args.nmea, replay_interval_s=args.replay_interval)
    main_root.mainloop()

    if pygame.get_init():
        pygame.quit()
    print("MAIN_APP: mainloop finished.")


if __name__ == "__main__":
    main()
