import os


class Config:
    # Board
    GRID_SIZE = int(os.environ.get('GRID_SIZE', '20'))
    DEFAULT_CUBES = int(os.environ.get('DEFAULT_CUBES', '14'))
    DEFAULT_WIN_LENGTH = int(os.environ.get('DEFAULT_WIN_LENGTH', '4'))
    MIN_WIN_LENGTH = 4
    MAX_WIN_LENGTH = 6
    # Seats
    DEFAULT_CAPACITY = int(os.environ.get('DEFAULT_CAPACITY', '3'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '6'))
    # Grace windows and cleanup (seconds)
    DISCONNECT_GRACE_SEC = float(os.environ.get('DISCONNECT_GRACE_SEC', '120'))
    EMPTY_ROOM_TTL_SEC = float(os.environ.get('EMPTY_ROOM_TTL_SEC', '600'))
    MAX_LOBBY_AGE_SEC = float(os.environ.get('MAX_LOBBY_AGE_SEC', '3600'))
    CLEANUP_INTERVAL_SEC = float(os.environ.get('CLEANUP_INTERVAL_SEC', '3600'))
    # Server
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '8000'))
