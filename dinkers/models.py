import uuid
from dinkers.app import db
from dinkers.services.matchups import PlayerSnapshot, RecentMatch
from dinkers.services.rating import normalize_rating_map
from dinkers.time_utils import isoformat_utc, utcnow_naive


def _new_id():
    return str(uuid.uuid4())


class Group(db.Model):
    """A club or standing game whose players share courts."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(80), nullable=False)
    slug = db.Column(db.String(80), unique=True, nullable=False)
    pin_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'slug': self.slug}


class Player(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    group_id = db.Column(db.String(36), db.ForeignKey('group.id'), nullable=False)
    name = db.Column(db.String(80), nullable=False)
    rating = db.Column(db.Float, nullable=False, default=3.5)
    is_present = db.Column(db.Boolean, nullable=False, default=True)
    games_since_played = db.Column(db.Integer, nullable=False, default=0)  # rounds rested in a row
    games_played = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.Index('ix_player_group_present', 'group_id', 'is_present'),
    )

    group = db.relationship('Group', backref='players')

    def to_snapshot(self):
        return PlayerSnapshot(
            id=self.id,
            name=self.name,
            rating=float(self.rating),
            games_since_played=int(self.games_since_played or 0),
            games_played=int(self.games_played or 0),
        )

    def to_dict(self):
        return {
            'id': self.id, 'group_id': self.group_id, 'name': self.name,
            'rating': self.rating, 'is_present': self.is_present,
            'games_since_played': self.games_since_played,
            'games_played': self.games_played,
        }


class GroupSession(db.Model):
    """A day of play; matches attach to the group's latest session."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    group_id = db.Column(db.String(36), db.ForeignKey('group.id'), nullable=False)
    started_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'id': self.id, 'group_id': self.group_id,
            'started_at': isoformat_utc(self.started_at),
        }


class Match(db.Model):
    """A completed 2v2 game with its rating movement."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    group_id = db.Column(db.String(36), db.ForeignKey('group.id'), nullable=False)
    session_id = db.Column(db.String(36), db.ForeignKey('group_session.id'), nullable=False)
    score_a = db.Column(db.Integer, nullable=False)
    score_b = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.Index('ix_match_group_created', 'group_id', 'created_at'),
    )

    players = db.relationship(
        'MatchPlayer', backref='match', lazy='joined',
        order_by='MatchPlayer.id', cascade='all, delete-orphan',
    )

    @property
    def team_a(self):
        return [mp.player_id for mp in self.players if mp.team == 'a']

    @property
    def team_b(self):
        return [mp.player_id for mp in self.players if mp.team == 'b']

    @property
    def player_ids(self):
        return self.team_a + self.team_b

    @property
    def rating_deltas(self):
        return normalize_rating_map({mp.player_id: mp.rating_change for mp in self.players})

    @property
    def pre_match_ratings(self):
        return normalize_rating_map({mp.player_id: mp.rating_before for mp in self.players})

    def to_recent(self):
        return RecentMatch(
            id=self.id,
            created_at=self.created_at,
            team_a=tuple(self.team_a),
            team_b=tuple(self.team_b),
        )

    def to_dict(self):
        return {
            'id': self.id, 'group_id': self.group_id,
            'session_id': self.session_id,
            'created_at': isoformat_utc(self.created_at),
            'players': self.player_ids,
            'team_a': self.team_a, 'team_b': self.team_b,
            'score_a': self.score_a, 'score_b': self.score_b,
            'rating_deltas': self.rating_deltas,
            'pre_match_ratings': self.pre_match_ratings,
        }


class MatchPlayer(db.Model):
    """Links a player to a match with team side and rating tracking."""
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(36), db.ForeignKey('match.id'), nullable=False)
    player_id = db.Column(db.String(36), db.ForeignKey('player.id'), nullable=False)
    team = db.Column(db.String(1), nullable=False)  # 'a' or 'b'
    rating_before = db.Column(db.Float, nullable=True)  # immutable once written
    rating_change = db.Column(db.Float, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('match_id', 'player_id', name='uq_match_player'),
    )
