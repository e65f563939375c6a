"""Static catalogues and tuning constants."""

from .models import StoolType

# =============================================================================
# Bristol scale
# =============================================================================

MIN_STOOL_TYPE = 1
MAX_STOOL_TYPE = 7

STOOL_TYPES: tuple[StoolType, ...] = (
    StoolType(type=1, label="Hard", emoji="🪨"),
    StoolType(type=2, label="Lumpy", emoji="🥜"),
    StoolType(type=3, label="Cracked", emoji="🌽"),
    StoolType(type=4, label="Smooth", emoji="🌭"),
    StoolType(type=5, label="Soft", emoji="☁️"),
    StoolType(type=6, label="Mushy", emoji="🍦"),
    StoolType(type=7, label="Liquid", emoji="💧"),
)

# =============================================================================
# Time-of-day buckets (label, local hours, emoji); must cover 0..23 exactly once
# =============================================================================

TIME_PERIODS: tuple[tuple[str, tuple[int, ...], str], ...] = (
    ("Morning", (6, 7, 8, 9, 10, 11), "🌅"),
    ("Afternoon", (12, 13, 14, 15, 16, 17), "☀️"),
    ("Evening", (18, 19, 20, 21), "🌆"),
    ("Night", (22, 23, 0, 1, 2, 3, 4, 5), "🌙"),
)

# =============================================================================
# Health score tuning
# =============================================================================

IDEAL_STOOL_TYPE = 4
TYPE_DEVIATION_PENALTY = 20
STREAK_BONUS_CAP_DAYS = 14
STREAK_BONUS_PER_DAY = 2
MAX_HEALTH_SCORE = 100

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

DEFAULT_DISPLAY_NAME = "Friend"

# =============================================================================
# Table Names
# =============================================================================

LOGS_TABLE = "poop_logs"
PROFILES_TABLE = "profiles"
FRIENDSHIPS_TABLE = "friendships"
