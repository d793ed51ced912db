"""Mood trend summaries for charting."""

from collections import Counter

from pydantic import BaseModel, Field

from .storage.models import MoodEntry


class MoodPoint(BaseModel):
    """One point of the intensity chart."""

    label: str = Field(description="Short date label, e.g. 'Mar 4'")
    intensity: int
    mood: str


class MoodTrends(BaseModel):
    """Aggregated view of a user's mood entries."""

    points: list[MoodPoint] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)
    average_intensity: float = 0.0
    total: int = 0

    @property
    def most_common_mood(self) -> str | None:
        if not self.counts:
            return None
        return max(self.counts.items(), key=lambda item: item[1])[0]


def summarize_moods(entries: list[MoodEntry]) -> MoodTrends:
    """Build chart points, per-mood counts and the average intensity.

    Entries are ordered chronologically; the average is rounded to one decimal.
    """
    ordered = sorted(entries, key=lambda e: e.created_at)
    if not ordered:
        return MoodTrends()

    points = [
        MoodPoint(
            label=f"{entry.created_at:%b} {entry.created_at.day}",
            intensity=entry.intensity,
            mood=entry.mood,
        )
        for entry in ordered
    ]
    counts = Counter(entry.mood for entry in ordered)
    average = sum(entry.intensity for entry in ordered) / len(ordered)

    return MoodTrends(
        points=points,
        counts=dict(counts),
        average_intensity=round(average, 1),
        total=len(ordered),
    )
