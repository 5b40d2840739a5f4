# src/audio/__init__.py
# ======================
# Audio Processing Layer — VoiceSentinel
#
# Responsibility:
#   - PCM decoding of WAV containers and raw buffers (decoder.py)
#   - Iterative radix-2 FFT (fft.py)
#   - Frame, spectral and pitch feature extraction (features.py)
#   - Prosody proxies: noise floor, pauses, speaking rate (prosody.py)
#   - Artifact flags and quality scoring (artifacts.py, quality.py)
#
# Everything here is a pure function of its input buffer.
