import json
from datetime import datetime, timezone

from streak_pickem import db
from streak_pickem.models.matchup import Matchup
from streak_pickem.models.user_state import Pick
from streak_pickem.utils.calendar import ensure_aware, format_timestamp, naive_utc

STATE_SCHEDULED = "scheduled"
STATE_CHECKING = "checking"
STATE_RESOLVED = "resolved"
STATE_EXHAUSTED = "exhausted"

PENDING_STATES = (STATE_SCHEDULED, STATE_CHECKING)

KIND_LIVE = "live"
KIND_SIMULATED = "simulated"


class OutcomeCheck(db.Model):
    """A deferred outcome resolution for one pick, persisted so restarts can resume it"""

    __tablename__ = "outcome_checks"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.String(255), nullable=False, index=True)
    matchup_id = db.Column(db.String(100), nullable=False)
    kind = db.Column(db.String(20), nullable=False, default=KIND_LIVE)

    # Serialized Matchup and Pick at schedule time
    matchup_json = db.Column(db.Text, nullable=False)
    pick_json = db.Column(db.Text, nullable=False)

    attempt = db.Column(db.Integer, nullable=False, default=1)
    not_before = db.Column(db.DateTime, nullable=False)
    state = db.Column(db.String(20), nullable=False, default=STATE_SCHEDULED)
    last_error = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (db.Index("idx_outcome_check_state", "state", "not_before"),)

    def __repr__(self):
        return f"<OutcomeCheck {self.id} {self.matchup_id} attempt={self.attempt} {self.state}>"

    @property
    def job_id(self):
        return f"outcome_check_{self.id}"

    @property
    def matchup(self):
        return Matchup.from_dict(json.loads(self.matchup_json))

    @property
    def pick(self):
        return Pick.from_dict(json.loads(self.pick_json))

    @property
    def run_at(self):
        return ensure_aware(self.not_before)

    @property
    def is_pending(self):
        return self.state in PENDING_STATES

    def transition(self, state, not_before=None, error=None):
        """Move to a new state and commit"""
        self.state = state
        if not_before is not None:
            self.not_before = naive_utc(not_before)
        if error is not None:
            self.last_error = error
        db.session.commit()

    @staticmethod
    def create(user_id, matchup, pick, not_before, kind):
        check = OutcomeCheck(
            user_id=user_id,
            matchup_id=matchup.id,
            kind=kind,
            matchup_json=json.dumps(matchup.to_dict()),
            pick_json=json.dumps(pick.to_dict()),
            attempt=1,
            not_before=naive_utc(not_before),
            state=STATE_SCHEDULED,
        )
        db.session.add(check)
        db.session.commit()
        return check

    @staticmethod
    def get_pending():
        return (
            OutcomeCheck.query.filter(OutcomeCheck.state.in_(PENDING_STATES))
            .order_by(OutcomeCheck.not_before)
            .all()
        )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "matchup_id": self.matchup_id,
            "kind": self.kind,
            "attempt": self.attempt,
            "not_before": format_timestamp(self.not_before),
            "state": self.state,
            "last_error": self.last_error,
        }
