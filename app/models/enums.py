import enum

# Enums
class StudyDifficulty(str, enum.Enum):
    introductory = "Introductory"
    intermediate = "Intermediate"
    advanced = "Advanced"

class StudyLength(str, enum.Enum):
    brief = "Brief"
    standard = "Standard"
    exhaustive = "Exhaustive"

class UserTier(str, enum.Enum):
    seeker = "seeker"
    scribe = "scribe"

class EngagementKind(str, enum.Enum):
    """Counters kept on every study."""

    views = "views"
    likes = "likes"
    shares = "shares"
    clones = "clones"
