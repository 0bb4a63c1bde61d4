"""GPS fix filtering: merges noisy samples into a trusted position."""

from dataclasses import dataclass, replace
from typing import Optional, Callable

from .config import CONFIG
from .geo import haversine_distance, in_box
from .models import GpsFix


@dataclass
class FilterResult:
    """Outcome of feeding one fix through the filter"""
    accepted: bool
    position: Optional[GpsFix]  # effective position after this fix
    low_confidence: bool = False
    reason: Optional[str] = None  # why the fix was rejected
    emitted: bool = False  # a position update was published
    needs_fresh_fix: bool = False  # looks like a cached fix, ask for a fresh one


class LocationFilter:
    """Validates raw fixes and keeps the most accurate one seen.

    The best fix only ever improves, except through force_fix() which
    represents an explicit, uncached GPS request. Listeners registered via
    ``on_position`` receive ``(fix, low_confidence)`` only when the effective
    position moved more than the epsilon, on the first fix, or on a forced
    refresh.
    """

    def __init__(self, on_position: Optional[Callable[[GpsFix, bool], None]] = None,
                 logger=None, config: Optional[dict] = None):
        config = config or CONFIG
        self.on_position = on_position
        self.logger = logger
        self.box = config["default_location_box"]
        self.default_location_accuracy = config["default_location_accuracy"]
        self.fresh_fix_accuracy = config["fresh_fix_accuracy"]
        self.max_acceptable_accuracy = config["max_acceptable_accuracy"]
        self.missing_accuracy = config["missing_accuracy"]
        self.epsilon = config["position_epsilon"]

        self.best_fix: Optional[GpsFix] = None
        self.effective_position: Optional[GpsFix] = None
        self.last_emitted: Optional[GpsFix] = None
        self.low_confidence = False
        self.rejected_count = 0
        self.accepted_count = 0

    def _normalize(self, fix: GpsFix) -> GpsFix:
        if fix.accuracy is None:
            return replace(fix, accuracy=float(self.missing_accuracy))
        return fix

    def _improves(self, fix: GpsFix) -> bool:
        return self.best_fix is None or fix.accuracy < self.best_fix.accuracy

    def process(self, fix: GpsFix) -> FilterResult:
        """Feed one raw fix through the filter"""
        fix = self._normalize(fix)
        improves = self._improves(fix)
        in_default_box = in_box(fix.lat, fix.lng, self.box)
        needs_fresh_fix = in_default_box and fix.accuracy > self.fresh_fix_accuracy

        reason = None
        low_confidence = False
        if in_default_box and fix.accuracy > self.default_location_accuracy:
            # Browser-cached default location: only trusted when nothing better exists
            if improves:
                low_confidence = True
            else:
                reason = "default_location"
        elif fix.accuracy > self.max_acceptable_accuracy:
            if improves:
                low_confidence = True
            else:
                reason = "low_accuracy"

        if reason:
            self.rejected_count += 1
            if self.logger:
                self.logger.log("LocationRejected", {
                    "reason": reason,
                    "accuracy": fix.accuracy,
                    "best_accuracy": self.best_fix.accuracy if self.best_fix else None,
                })
            position = self.best_fix
            self.effective_position = position
            emitted = self._maybe_emit(position, self.low_confidence, force=False)
            return FilterResult(False, position, self.low_confidence, reason, emitted, needs_fresh_fix)

        self.accepted_count += 1
        if improves:
            self.best_fix = fix
        self.effective_position = fix
        self.low_confidence = low_confidence
        emitted = self._maybe_emit(fix, low_confidence, force=False)
        return FilterResult(True, fix, low_confidence, None, emitted, needs_fresh_fix)

    def force_fix(self, fix: GpsFix) -> FilterResult:
        """Apply the result of an explicit fresh GPS request.

        Replaces the best fix regardless of accuracy and always publishes.
        """
        fix = self._normalize(fix)
        self.best_fix = fix
        self.effective_position = fix
        self.low_confidence = fix.accuracy > self.max_acceptable_accuracy
        self.accepted_count += 1
        if self.logger:
            self.logger.log("Fresh fix applied", {"lat": fix.lat, "lng": fix.lng, "accuracy": fix.accuracy})
        self._maybe_emit(fix, self.low_confidence, force=True)
        return FilterResult(True, fix, self.low_confidence, None, True, False)

    def _maybe_emit(self, position: Optional[GpsFix], low_confidence: bool, force: bool) -> bool:
        if position is None:
            return False
        if not force and self.last_emitted is not None:
            moved = haversine_distance(self.last_emitted.lat, self.last_emitted.lng,
                                       position.lat, position.lng)
            if moved <= self.epsilon:
                return False
        self.last_emitted = position
        if self.on_position:
            self.on_position(position, low_confidence)
        return True

    def get_status(self) -> dict:
        return {
            "best_accuracy": self.best_fix.accuracy if self.best_fix else None,
            "low_confidence": self.low_confidence,
            "accepted": self.accepted_count,
            "rejected": self.rejected_count,
        }
