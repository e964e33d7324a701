from enum import Enum


class Metric(str, Enum):
    HEART_RATE = "heartRate"
    BODY_TEMP = "bodyTemp"
    BLOOD_PRESSURE = "bloodPressure"
    STRESS_LEVEL = "stressLevel"


# Classifier emission order, also the tie-break order within one sample
METRIC_ORDER: tuple[Metric, ...] = (
    Metric.HEART_RATE,
    Metric.BODY_TEMP,
    Metric.BLOOD_PRESSURE,
    Metric.STRESS_LEVEL,
)


class Severity(str, Enum):
    NORMAL = "normal"
    MODERATE = "moderate"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.NORMAL: 0, Severity.MODERATE: 1, Severity.HIGH: 2}


class EscalationMode(str, Enum):
    IDLE = "idle"
    CALMING = "calming"
    AWAITING_CHECK_IN = "awaitingCheckIn"
    EMERGENCY = "emergency"


class SosStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class VibrationPattern(str, Enum):
    GENTLE = "gentle"
    STRONG = "strong"


class ToastSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DESTRUCTIVE = "destructive"


# Scheduler keys
VIBRATION_CLEAR_TOKEN = "vibration-clear"
CHECK_IN_GRACE_TOKEN = "checkin-grace"
