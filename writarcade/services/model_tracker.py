"""
Model Performance Tracker - learns which image backends players prefer

Each player rating (1-5) for a panel image updates a running average for the
backend that produced it. The Image Synthesizer reads these averages to bias
backend selection toward better-rated models.

Thread-safety:
- A registry lock guards creation of per-backend entries
- Each backend has its own lock, so ratings for different backends never
  contend and concurrent ratings for one backend are serialized

Usage:
    from writarcade.services.model_tracker import get_model_tracker

    tracker = get_model_tracker()
    tracker.record_feedback("qwen-image", 5)
    stats = tracker.get_model_stats()
"""

import logging
import threading
from typing import Dict, List, Optional

from writarcade.config.limits import MIN_RATING, MAX_RATING
from writarcade.models import FAILED_BACKEND_ID, ModelPerformanceRecord

logger = logging.getLogger(__name__)


class ModelPerformanceTracker:
    """Thread-safe per-backend running averages of player ratings"""

    def __init__(self):
        self._records: Dict[str, ModelPerformanceRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, backend_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(backend_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[backend_id] = lock
            return lock

    def record_feedback(self, backend_id: str, rating: int) -> ModelPerformanceRecord:
        """
        Fold one rating into the backend's running average.

        Args:
            backend_id: Image backend that produced the rated image
            rating: Integer score 1-5

        Returns:
            Snapshot of the updated record

        Raises:
            ValueError: Rating is not an int in 1..5, or backend_id is empty
                or names the failed-image placeholder
        """
        if not backend_id:
            raise ValueError("backend_id is required")
        if backend_id == FAILED_BACKEND_ID:
            raise ValueError("Failed images have no backend to rate")
        # bool is an int subclass; True is not a rating
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValueError(f"Rating must be an integer, got {rating!r}")
        if rating < MIN_RATING or rating > MAX_RATING:
            raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}")

        with self._lock_for(backend_id):
            record = self._records.get(backend_id)
            if record is None:
                record = ModelPerformanceRecord(backend_id=backend_id)
                self._records[backend_id] = record

            count = record.rating_count
            record.running_average_score = (record.running_average_score * count + rating) / (count + 1)
            record.rating_count = count + 1
            snapshot = record.model_copy()

        logger.info(
            f"⭐ Feedback for {backend_id}: {rating}/5 "
            f"(avg {snapshot.running_average_score:.2f} over {snapshot.rating_count})"
        )
        return snapshot

    def get_record(self, backend_id: str) -> Optional[ModelPerformanceRecord]:
        # Lookups never register a backend; only ratings do
        with self._registry_lock:
            lock = self._locks.get(backend_id)
        if lock is None:
            return None
        with lock:
            record = self._records.get(backend_id)
            return record.model_copy() if record else None

    def get_all_records(self) -> List[ModelPerformanceRecord]:
        """Snapshot of every backend that has at least one rating."""
        with self._registry_lock:
            backend_ids = list(self._records.keys())
        records = (self.get_record(b) for b in backend_ids)
        return [r for r in records if r is not None]

    def get_model_stats(self) -> Dict[str, Dict[str, float]]:
        """
        Get stats keyed by backend id.

        Returns:
            {"qwen-image": {"rating_count": 3, "average_score": 4.33}, ...}
        """
        return {
            r.backend_id: {
                "rating_count": r.rating_count,
                "average_score": round(r.running_average_score, 2),
            }
            for r in self.get_all_records()
        }

    def has_ratings(self) -> bool:
        with self._registry_lock:
            return bool(self._records)


# Singleton instance
_model_tracker: Optional[ModelPerformanceTracker] = None


def get_model_tracker() -> ModelPerformanceTracker:
    """Get the process-wide tracker (creates one if not initialized)."""
    global _model_tracker
    if _model_tracker is None:
        _model_tracker = ModelPerformanceTracker()
    return _model_tracker


def init_model_tracker() -> ModelPerformanceTracker:
    """
    Initialize a fresh tracker (call at app startup).

    Ratings are held in memory only and start empty on every boot.
    """
    global _model_tracker
    _model_tracker = ModelPerformanceTracker()
    logger.info("📊 Model performance tracker initialized")
    return _model_tracker


def reset_model_tracker():
    """Reset the singleton (useful for testing)."""
    global _model_tracker
    _model_tracker = None
