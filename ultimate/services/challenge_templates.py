"""
Challenge Templates

The single registry of built-in programs, keyed by challenge type.
Anything that needs a template's name, default duration or task set
reads it from here.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ultimate.models import ChallengeType, TaskFrequency, TaskType, TimeOfDay


@dataclass(frozen=True)
class TaskTemplate:
    name: str
    description: str
    type: TaskType
    frequency: TaskFrequency = TaskFrequency.DAILY
    time_of_day: TimeOfDay = TimeOfDay.ANYTIME
    duration_minutes: Optional[int] = None
    target_value: Optional[float] = None
    target_unit: Optional[str] = None


@dataclass(frozen=True)
class ChallengeTemplate:
    type: ChallengeType
    name: str
    description: str
    duration_in_days: int
    image_name: Optional[str] = None
    difficulty: str = "Moderate"
    tasks: List[TaskTemplate] = field(default_factory=list)


TEMPLATES: Dict[ChallengeType, ChallengeTemplate] = {
    ChallengeType.SEVENTY_FIVE_HARD: ChallengeTemplate(
        type=ChallengeType.SEVENTY_FIVE_HARD,
        name="75 Hard Challenge",
        description="Transform your life with this intense 75-day mental toughness program.",
        duration_in_days=75,
        image_name="75hard",
        difficulty="Hard",
        tasks=[
            TaskTemplate(
                name="Two 45-Minute Workouts",
                description="Complete two 45-minute workouts; one of them must be outdoors.",
                type=TaskType.WORKOUT,
                duration_minutes=90,
                target_value=2,
                target_unit="workouts",
            ),
            TaskTemplate(
                name="Follow Diet Plan",
                description="Stick to your chosen diet plan with zero cheating.",
                type=TaskType.NUTRITION,
            ),
            TaskTemplate(
                name="Drink 1 Gallon of Water",
                description="Drink 1 gallon (3.8 liters) of water throughout the day.",
                type=TaskType.WATER,
                target_value=1.0,
                target_unit="gallon",
            ),
            TaskTemplate(
                name="Read 10 Pages",
                description="Read 10 pages of a non-fiction book.",
                type=TaskType.READING,
                target_value=10,
                target_unit="pages",
            ),
            TaskTemplate(
                name="Take Progress Photo",
                description="Take a daily progress photo.",
                type=TaskType.PHOTO,
                time_of_day=TimeOfDay.MORNING,
            ),
        ],
    ),
    ChallengeType.WATER_FASTING: ChallengeTemplate(
        type=ChallengeType.WATER_FASTING,
        name="7 Day Water Fast",
        description="Cleanse your body and reset your system with a water fast.",
        duration_in_days=7,
        image_name="waterfasting",
        difficulty="Hard",
        tasks=[
            TaskTemplate(
                name="Maintain Fast",
                description="Consume only water throughout the day.",
                type=TaskType.FASTING,
            ),
            TaskTemplate(
                name="Drink Water",
                description="Drink at least 2 liters of water throughout the day.",
                type=TaskType.WATER,
                target_value=2.0,
                target_unit="liters",
            ),
            TaskTemplate(
                name="Journal Entry",
                description="Record your experiences, feelings, and any physical changes.",
                type=TaskType.JOURNAL,
                time_of_day=TimeOfDay.EVENING,
            ),
        ],
    ),
    ChallengeType.THIRTY_ONE_MODIFIED: ChallengeTemplate(
        type=ChallengeType.THIRTY_ONE_MODIFIED,
        name="31 Modified Challenge",
        description="A more balanced approach to the 75 Hard challenge, designed for sustainable progress.",
        duration_in_days=31,
        image_name="31modified",
        tasks=[
            TaskTemplate(
                name="30-Minute Workout",
                description="Complete a 30-minute workout of your choice.",
                type=TaskType.WORKOUT,
                duration_minutes=30,
            ),
            TaskTemplate(
                name="Follow Nutrition Plan",
                description="Stick to your nutrition plan with one cheat meal allowed per week.",
                type=TaskType.NUTRITION,
            ),
            TaskTemplate(
                name="Drink 2 Liters of Water",
                description="Drink at least 2 liters of water throughout the day.",
                type=TaskType.WATER,
                target_value=2.0,
                target_unit="liters",
            ),
            TaskTemplate(
                name="Track Progress",
                description="Record your progress for the day.",
                type=TaskType.JOURNAL,
                time_of_day=TimeOfDay.EVENING,
            ),
        ],
    ),
    ChallengeType.CUSTOM: ChallengeTemplate(
        type=ChallengeType.CUSTOM,
        name="Custom Challenge",
        description="Build your own challenge with the tasks that matter to you.",
        duration_in_days=30,
        image_name="custom",
        difficulty="Custom",
    ),
}


def get_template(challenge_type: ChallengeType) -> ChallengeTemplate:
    return TEMPLATES[ChallengeType(challenge_type)]


def list_templates() -> List[ChallengeTemplate]:
    return list(TEMPLATES.values())
