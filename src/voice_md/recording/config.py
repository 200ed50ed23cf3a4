"""Configuration constants for audio recording."""

# Audio Configuration
DEFAULT_SAMPLE_RATE = 48000  # Hz, accepted by every container in the preference list
DEFAULT_CHANNELS = 1  # mono is enough for speech
SAMPLE_WIDTH_BYTES = 2  # 16-bit PCM
DEFAULT_POLL_INTERVAL = 0.1  # seconds - chunk collection tick

# Capture hints (PortAudio has no processing switches; recorded for diagnostics)
DEFAULT_ECHO_CANCELLATION = True
DEFAULT_NOISE_SUPPRESSION = True

# Session Configuration
DEFAULT_MAX_RECORDING_DURATION = 300  # seconds
TIMER_TICK_INTERVAL = 1.0  # seconds

# Opus only encodes these sample rates
OPUS_SAMPLE_RATES = (8000, 12000, 16000, 24000, 48000)

# Status text shown by the recording view
STATUS_READY = "Ready to record"
STATUS_RECORDING = "Recording..."
STATUS_PROCESSING = "Processing..."
STATUS_PERMISSION_DENIED = "❌ Microphone access denied"
STATUS_NO_MICROPHONE = "❌ No microphone found"
STATUS_START_FAILED = "❌ Failed to start recording"
STATUS_STOP_FAILED = "❌ Failed to stop recording"
