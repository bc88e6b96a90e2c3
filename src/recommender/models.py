from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class Candidate(BaseModel):
    """A content item with the denormalized fields needed for scoring.

    This is also the content summary returned by the recommendation API.
    """

    id: str = Field(..., description="Post identifier")
    author_id: str = Field(..., description="Identifier of the authoring user")
    community_id: str | None = Field(None, description="Community (tribe) the post belongs to")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    keywords: list[str] = Field(default_factory=list, description="Topical keywords")
    like_count: int = Field(0, ge=0)
    comment_count: int = Field(0, ge=0)
    archived: bool = False
    description: str = ""
    has_image: bool = False

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Stores may hand back naive timestamps; they are UTC.
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ScoredCandidate(BaseModel):
    """A candidate with its relevance score.

    ``reasons`` is diagnostic only and never drives ranking.
    """

    candidate: Candidate
    score: float
    reasons: set[str] = Field(default_factory=set)


class UserProfile(BaseModel):
    """Per-request bundle of the signals used to personalize recommendations."""

    interests: dict[str, float] = Field(
        default_factory=dict, description="Tag -> decayed interest weight"
    )
    following: set[str] = Field(default_factory=set, description="Ids of followed users")
    viewed_posts: set[str] = Field(
        default_factory=set, description="Ids of posts viewed in the recent window"
    )
    recent_interactions: dict[str, float] = Field(
        default_factory=dict, description="Post id -> accumulated interaction weight"
    )


class CommonConnection(BaseModel):
    """A user that links the requester to a recommended user."""

    id: str
    username: str | None = None
    name: str | None = None
    surname: str | None = None
    profile_photo: str | None = None


class UserSummary(BaseModel):
    """A user suggestion, annotated with the signals that produced it."""

    id: str
    username: str | None = None
    name: str | None = None
    surname: str | None = None
    profile_photo: str | None = None
    common_signal_count: int = Field(
        0, ge=0, description="Number of shared followers or shared-interest users"
    )
    common_connections: list[CommonConnection] = Field(default_factory=list)
