from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.utils.clock import utcnow


# (incident, voter) 당 한 줄만 존재. 투표 변경은 같은 row를 덮어씀
class IncidentVote(Base):
    __tablename__ = "incident_votes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    incident_id: Mapped[int] = mapped_column(
        ForeignKey("incidents.id", ondelete="CASCADE"), index=True, nullable=False
    )
    voter_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # "upvote" | "downvote"
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    incident: Mapped["Incident"] = relationship("Incident", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("incident_id", "voter_id", name="uq_incident_votes_incident_voter"),
    )
