"""
Security Signal Evaluator - Trust & fraud checks for review submissions

Runs AFTER the geofence check and BEFORE anything is written.

Policy:
- Hard gates block the submission outright:
  low GPS accuracy, mock location, too many client-reported suspicious
  activities, or too many soft flags in total.
- Soft flags are counted and kept for audit but never block alone:
  verification time mismatch, no motion, shallow location history,
  one flag per reported suspicious activity.
- Same-device volume is informational only.

Every tripped signal is written to the suspicious activity recorder
before evaluate() returns, so blocked attempts still leave a trail.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from hashview.config import settings
from hashview.schemas.submission import SecurityTelemetry
from hashview.services.audit_log import SuspiciousActivityRecorder

logger = logging.getLogger(__name__)


class VerdictOutcome(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"


class SignalClass(str, Enum):
    HARD_GATE = "hard_gate"
    SOFT_FLAG = "soft_flag"
    INFO = "info"


SEVERITY = {
    SignalClass.HARD_GATE: "high",
    SignalClass.SOFT_FLAG: "medium",
    SignalClass.INFO: "low",
}

# Block messages, highest priority first
BLOCK_MESSAGES = {
    "mock_location": "Mock GPS detected. Please disable any location spoofing apps and try again.",
    "low_gps_accuracy": "GPS accuracy is too low ({accuracy:.0f}m). Please move to an open area and try again.",
    "excessive_suspicious_activities": "Review blocked due to multiple security concerns. Please try again later.",
    "excessive_soft_flags": "Review blocked due to multiple security concerns. Please try again later.",
}


@dataclass(frozen=True)
class SignalHit:
    name: str
    signal_class: SignalClass
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def severity(self) -> str:
        return SEVERITY[self.signal_class]


@dataclass
class SecurityVerdict:
    """outcome is BLOCK iff at least one hard gate tripped"""
    outcome: VerdictOutcome
    flag_count: int
    hits: List[SignalHit] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return self.outcome == VerdictOutcome.BLOCK

    @property
    def signals(self) -> List[Tuple[str, str]]:
        return [(hit.name, hit.severity) for hit in self.hits]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "flag_count": self.flag_count,
            "signals": [
                {"name": name, "severity": severity}
                for name, severity in self.signals
            ],
        }


class SecurityService:
    """Classifies submission telemetry as Allow or Block"""

    def __init__(self, recorder: SuspiciousActivityRecorder):
        self.recorder = recorder
        self.thresholds = {
            "gps_accuracy_max_m": settings.GPS_ACCURACY_MAX_METERS,
            "expected_verification_time_sec": settings.EXPECTED_VERIFICATION_TIME_SEC,
            "min_location_history": settings.MIN_LOCATION_HISTORY_COUNT,
            "suspicious_activity_block_count": settings.SUSPICIOUS_ACTIVITY_BLOCK_COUNT,
            "soft_flag_block_count": settings.SOFT_FLAG_BLOCK_COUNT,
            "same_device_daily_flag": settings.SAME_DEVICE_DAILY_FLAG_COUNT,
        }

    def evaluate(
        self,
        telemetry: Optional[SecurityTelemetry],
        same_device_reviews_today: int = 0,
        user_id: Optional[int] = None
    ) -> SecurityVerdict:
        """
        Evaluate telemetry and return a verdict.

        Args:
            telemetry: Client-reported signals (None = nothing reported)
            same_device_reviews_today: Reviews already posted today from this device
            user_id: Submitting user, for the audit trail
        """
        if telemetry is None:
            telemetry = SecurityTelemetry()
        hits = self._run_checks(telemetry, same_device_reviews_today)

        flag_count = sum(1 for hit in hits if hit.signal_class == SignalClass.SOFT_FLAG)
        if flag_count >= self.thresholds["soft_flag_block_count"]:
            hits.append(SignalHit(
                "excessive_soft_flags",
                SignalClass.HARD_GATE,
                {"flag_count": flag_count},
            ))

        hard_gates = [hit for hit in hits if hit.signal_class == SignalClass.HARD_GATE]
        if hard_gates:
            verdict = SecurityVerdict(
                outcome=VerdictOutcome.BLOCK,
                flag_count=flag_count,
                hits=hits,
                reason=self._block_reason(hard_gates, telemetry),
            )
        else:
            verdict = SecurityVerdict(
                outcome=VerdictOutcome.ALLOW,
                flag_count=flag_count,
                hits=hits,
            )

        for hit in hits:
            self.recorder.record(user_id, hit.name, hit.metadata)

        if verdict.blocked:
            logger.warning(
                f"Submission blocked for user {user_id}: "
                f"{[hit.name for hit in hard_gates]} (flags={flag_count})"
            )
        elif flag_count:
            logger.info(f"Submission allowed with {flag_count} soft flag(s) for user {user_id}")

        return verdict

    def _run_checks(
        self,
        telemetry: SecurityTelemetry,
        same_device_reviews_today: int
    ) -> List[SignalHit]:
        """Run every check independently; order only affects log order."""
        hits = []

        # 1. GPS accuracy
        accuracy = telemetry.location_accuracy
        if accuracy is not None and accuracy > self.thresholds["gps_accuracy_max_m"]:
            hits.append(SignalHit("low_gps_accuracy", SignalClass.HARD_GATE, {"accuracy": accuracy}))

        # 2. Mock location
        if telemetry.is_mock_location is True:
            hits.append(SignalHit("mock_location", SignalClass.HARD_GATE, {
                "device_platform": telemetry.device_platform,
            }))

        # 3. Verification time
        verification_time = telemetry.verification_time
        expected = self.thresholds["expected_verification_time_sec"]
        if verification_time is not None and verification_time != expected:
            hits.append(SignalHit("verification_time_mismatch", SignalClass.SOFT_FLAG, {
                "verification_time": verification_time,
                "expected": expected,
            }))

        # 4. Motion detection
        if telemetry.motion_detected is False:
            hits.append(SignalHit("no_motion_detected", SignalClass.SOFT_FLAG))

        # 5. Location history depth
        history = telemetry.location_history_count
        if history is not None and history < self.thresholds["min_location_history"]:
            hits.append(SignalHit("insufficient_location_history", SignalClass.SOFT_FLAG, {
                "location_history_count": history,
            }))

        # 6. Client-reported suspicious activities, one flag each
        for activity in telemetry.suspicious_activities:
            hits.append(SignalHit("client_suspicious_activity", SignalClass.SOFT_FLAG, {
                "activity_type": activity.type,
                "activity_metadata": activity.metadata,
                "client_timestamp": activity.timestamp.isoformat() if activity.timestamp else None,
            }))

        # 7. Suspicious activity volume overrides the per-entry flags
        activity_count = len(telemetry.suspicious_activities)
        if activity_count >= self.thresholds["suspicious_activity_block_count"]:
            hits.append(SignalHit("excessive_suspicious_activities", SignalClass.HARD_GATE, {
                "count": activity_count,
            }))

        # 8. Same-device volume (informational)
        if same_device_reviews_today >= self.thresholds["same_device_daily_flag"]:
            hits.append(SignalHit("same_device_multiple_reviews", SignalClass.INFO, {
                "device_id": telemetry.device_id,
                "reviews_today": same_device_reviews_today,
            }))

        return hits

    def _block_reason(self, hard_gates: List[SignalHit], telemetry: SecurityTelemetry) -> str:
        tripped = {hit.name for hit in hard_gates}
        for name in BLOCK_MESSAGES:
            if name in tripped:
                return BLOCK_MESSAGES[name].format(accuracy=telemetry.location_accuracy or 0)
        return BLOCK_MESSAGES["excessive_soft_flags"]
