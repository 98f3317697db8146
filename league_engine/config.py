"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

import os


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes')


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


# =============================================================================
# SERVER SETTINGS
# =============================================================================
PORT = _get_int('PORT', 8000)
HOST = _get_str('HOST', '0.0.0.0')

# =============================================================================
# STORAGE SETTINGS
# =============================================================================
# Data directory path
# Priority: DATA_DIR > RAILWAY_VOLUME_MOUNT_PATH > /app/data (container) > data (local)
DATA_DIR = (
    os.environ.get('DATA_DIR') or
    os.environ.get('RAILWAY_VOLUME_MOUNT_PATH') or
    ('/app/data' if os.path.exists('/app') else 'data')
)

# How long a live standings table stays cached (in seconds)
STANDINGS_CACHE_TTL_SECONDS = _get_int('STANDINGS_CACHE_TTL_SECONDS', 300)

# =============================================================================
# ENGINE SETTINGS
# =============================================================================
# Last-resort tiebreak when every criterion is level: "random" or "stable"
TIEBREAK_FALLBACK = _get_str('TIEBREAK_FALLBACK', 'random')

# Opening playoff round is played this many days after the regular season
PLAYOFF_START_OFFSET_DAYS = _get_int('PLAYOFF_START_OFFSET_DAYS', 7)

# Days between consecutive playoff rounds
PLAYOFF_ROUND_INTERVAL_DAYS = _get_int('PLAYOFF_ROUND_INTERVAL_DAYS', 7)

# =============================================================================
# TRIGGER SETTINGS
# =============================================================================
# Daily trigger time (HH:MM, local time)
TRIGGER_TIME = _get_str('TRIGGER_TIME', '03:00')

# Create the next season as soon as the plan is ready
AUTO_START_NEXT_SEASON = _get_bool('AUTO_START_NEXT_SEASON', False)

# Cooldown between manual trigger requests (in seconds)
TRIGGER_COOLDOWN_SECONDS = _get_int('TRIGGER_COOLDOWN_SECONDS', 60)

# =============================================================================
# LEAGUE STRUCTURE
# =============================================================================
# Slot counts are per group
DEFAULT_DIVISIONS = [
    {
        'level': 1,
        'name': 'Division 1',
        'group_count': 1,
        'teams_per_group': 20,
        'promote_slots': 0,
        'promote_playoff_slots': 0,
        'relegate_slots': 3,
        'tournament_slots': 7,
        'playoff_promotion': 'final_winner',
    },
    {
        'level': 2,
        'name': 'Division 2',
        'group_count': 1,
        'teams_per_group': 20,
        'promote_slots': 2,
        'promote_playoff_slots': 4,  # 3rd to 6th play for one place
        'relegate_slots': 3,
        'tournament_slots': 0,
        'playoff_promotion': 'final_winner',
    },
    {
        'level': 3,
        'name': 'Division 3',
        'group_count': 2,
        'teams_per_group': 20,
        'promote_slots': 1,
        'promote_playoff_slots': 2,  # 2nd and 3rd of each group
        'relegate_slots': 3,
        'tournament_slots': 0,
        'playoff_promotion': 'final_winner',
    },
    {
        'level': 4,
        'name': 'Division 4',
        'group_count': 4,
        'teams_per_group': 20,
        'promote_slots': 1,
        'promote_playoff_slots': 1,  # runners-up play for two places
        'relegate_slots': 3,
        'tournament_slots': 0,
        'playoff_promotion': 'finalists',
    },
    {
        'level': 5,
        'name': 'Division 5',
        'group_count': 8,
        'teams_per_group': 20,
        'promote_slots': 1,
        'promote_playoff_slots': 1,  # runners-up play for four places
        'relegate_slots': 0,
        'tournament_slots': 0,
        'playoff_promotion': 'opening_round_winners',
    },
]

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = _get_str('LOG_LEVEL', 'INFO')
