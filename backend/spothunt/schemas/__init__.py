from .challenges import CHALLENGE_ID_PATTERN, Challenge, ChallengeIn, Difficulty
from .leaderboard import LeaderboardOut, LeaderboardRow
from .submissions import SubmissionCreate, SubmissionOut, SubmissionResult, SubmissionStatus
from .user import BadgeAward, BadgeOut, CurrentUser, MilestoneProgress, UserStanding

__all__ = [
    "CHALLENGE_ID_PATTERN",
    "Challenge",
    "ChallengeIn",
    "Difficulty",
    "LeaderboardOut",
    "LeaderboardRow",
    "SubmissionCreate",
    "SubmissionOut",
    "SubmissionResult",
    "SubmissionStatus",
    "BadgeAward",
    "BadgeOut",
    "CurrentUser",
    "MilestoneProgress",
    "UserStanding",
]
