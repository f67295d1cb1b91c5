from collections import deque
from typing import List, Optional

from landmark.peaks import Peak


class FrameMarks:
    """
    Peaks of one frame.

    Slots hold a Peak, or None once the peak has been pruned. Slots are
    never removed so that the magnitude order of the frame is kept.
    """

    __slots__ = ("t", "slots")

    def __init__(self, t, peaks):
        self.t = t
        self.slots: List[Optional[Peak]] = list(peaks)

    def __repr__(self):
        return f"FrameMarks(t={self.t}, slots={self.slots})"

    @property
    def peaks(self):
        """Peaks still present, in magnitude order."""
        return [peak for peak in self.slots if peak is not None]

    def invalidate(self, index):
        self.slots[index] = None


class PeakHistory:
    """
    Rolling window of per-frame peaks.

    A frame is "final" once pruning_dt newer frames have been seen: its
    peaks can no longer be pruned and are ready for pairing. Only the
    window_dt frames before the final frame are kept for pairing, which
    bounds the history to window_dt + pruning_dt + 1 frames.
    """

    def __init__(self, config):
        self.window_dt = config.window_dt
        self.pruning_dt = config.pruning_dt
        self.marks = deque()

    def __len__(self):
        return len(self.marks)

    def __getitem__(self, index):
        return self.marks[index]

    def append(self, t, peaks):
        self.marks.append(FrameMarks(t, peaks))

    @property
    def final_index(self):
        """Index of the frame that just became final (negative if none yet)."""
        return len(self.marks) - self.pruning_dt - 1

    def prune(self, threshold):
        """
        Invalidate peaks that the current threshold now dominates.

        Only frames still within the pruning delay are visited. Peaks at
        bin 0 are never pruned.

        Returns:
            pruned: number of invalidated slots
        """
        nm = len(self.marks)
        pruned = 0
        for i in range(nm - 1, max(self.final_index + 1, 0) - 1, -1):
            frame = self.marks[i]
            for j, peak in enumerate(frame.slots):
                if peak is None or peak.bin == 0:
                    continue
                if threshold.dominates(peak, nm - 1 - i):
                    frame.invalidate(j)
                    pruned += 1
        return pruned

    def trim(self):
        """Drop frames older than window_dt frames before the final frame."""
        excess = self.final_index + 1 - self.window_dt
        for _ in range(excess):
            self.marks.popleft()
