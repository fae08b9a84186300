from app.db.models.incident import Incident  # noqa: F401
from app.db.models.incident_vote import IncidentVote  # noqa: F401
from app.db.models.historical_pattern import HistoricalIncidentPattern  # noqa: F401
