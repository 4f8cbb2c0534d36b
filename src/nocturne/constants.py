"""
Constants and enumerations shared by the reconciliation engine, the
decoders and the persistence layer.
"""

from datetime import timedelta
from enum import Enum, IntEnum
from pathlib import Path

# ============================================================================
# Source Types
# ============================================================================


class SourceType(str, Enum):
    """Where a session's data was recorded."""

    CPAP = "CPAP"  # Device-recorded therapy session
    PULSE_OXIMETRY = "PulseOximetry"
    HEALTH_API = "HealthAPI"


# Sources whose session boundaries are authoritative when splicing
ANCHOR_SOURCE_TYPES = frozenset({SourceType.CPAP, SourceType.PULSE_OXIMETRY})


# ============================================================================
# Signal Names
# ============================================================================


class SignalNames:
    """Canonical signal names used as keys in Session.signals."""

    SPO2 = "SpO2"
    PULSE = "Pulse"
    MOVEMENT = "Movement"
    SLEEP_STAGES = "Sleep Stages"


# Signals whose day-level statistics are always refreshed after a merge
PHYSIOLOGICAL_SIGNALS = (SignalNames.SPO2, SignalNames.PULSE)


class SleepStage(IntEnum):
    """Sleep-stage classification values stored in the Sleep Stages signal."""

    AWAKE = 1
    REM = 2
    LIGHT = 3
    DEEP = 4


# ============================================================================
# Event Types
# ============================================================================

EVENT_TYPE_DESATURATION = "Desaturation"
EVENT_TYPE_HYPOXEMIA = "Hypoxemia"
EVENT_TYPE_TACHYCARDIA = "Tachycardia"
EVENT_TYPE_BRADYCARDIA = "Bradycardia"

# ============================================================================
# Reconciliation Defaults
# ============================================================================

# Maximum gap between two imports for them to share a meta-session
DEFAULT_MERGE_GAP = timedelta(hours=1)

# Days added on either side of the import range to catch midnight crossings
DATE_RANGE_PADDING = timedelta(days=1)

# Default filler values used when splicing a signal
DEFAULT_FILLER_VALUES: dict[str, float] = {
    SignalNames.SLEEP_STAGES: float(SleepStage.AWAKE),
}

# Tolerance (in samples) applied before floor/ceil when splicing
SPLICE_SAMPLE_EPSILON = 1e-6

# ============================================================================
# Default Settings
# ============================================================================

# Database stored in user's home directory
DEFAULT_DATABASE_PATH = str(Path.home() / ".nocturne" / "nocturne.db")
DEFAULT_PROFILE_NAME = "Default"

# Logging configuration
DEFAULT_LOG_DIR = Path.home() / ".nocturne" / "logs"
DEFAULT_LOG_FILE = "nocturne.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5

# CLI display defaults
DEFAULT_LIST_DAYS_LIMIT = 20

# Time calculations
SECONDS_PER_HOUR = 3600
MILLISECONDS_PER_SECOND = 1000
