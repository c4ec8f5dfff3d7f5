import os


def _csv(value):
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    CORS_ORIGINS = _csv(os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173',
    ))
    # Grace windows (seconds)
    RECONNECT_GRACE_SEC = float(os.environ.get('RECONNECT_GRACE_SEC', '5'))
    EMPTY_LOBBY_GRACE_SEC = float(os.environ.get('EMPTY_LOBBY_GRACE_SEC', '30'))
    # Final results hold time before the lobby code is released
    RESULTS_DISPLAY_SEC = float(os.environ.get('RESULTS_DISPLAY_SEC', '10'))
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1'))
    LOBBY_CODE_LENGTH = int(os.environ.get('LOBBY_CODE_LENGTH', '6'))
    # Countdown durations per mode
    TIME_MODES = {
        'quick': int(os.environ.get('QUICK_MODE_SEC', '60')),
        'normal': int(os.environ.get('NORMAL_MODE_SEC', '180')),
        'long': int(os.environ.get('LONG_MODE_SEC', '300')),
    }
    DEFAULT_TIME_MODE = os.environ.get('DEFAULT_TIME_MODE', 'normal')
