from .climb import Climb
from .climb_log import ClimbLog
from .grade_vote import GradeVote
from .video import Video, VideoLike, VideoComment
from .user_profile import UserProfile

__all__ = [
    "Climb",
    "ClimbLog",
    "GradeVote",
    "Video",
    "VideoLike",
    "VideoComment",
    "UserProfile",
]
