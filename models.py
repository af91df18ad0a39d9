from datetime import datetime
from enum import Enum
import logging
import re

import pytz
from flask import current_app, has_app_context
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import validates
from werkzeug.security import generate_password_hash, check_password_hash

import rating
from brackets import BracketSide, BracketType, RESET_STAGE, generate_plan, single_elimination
from errors import (
    AlreadyGenerated,
    Closed,
    Duplicate,
    Full,
    InsufficientParticipants,
    InvalidWinner,
    Locked,
    NotCaptain,
    NotFound,
    NotManager,
    NotOwner,
    StateConflict,
)

db = SQLAlchemy()
logger = logging.getLogger(__name__)

UTC = pytz.utc


def current_time():
    return datetime.now(UTC)


def as_aware(value: datetime | None) -> datetime | None:
    """SQLite hands datetimes back naive; treat those as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return UTC.localize(value)


def _config(key, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


class Role(str, Enum):
    PLAYER = 'player'
    ORGANIZER = 'organizer'
    SPONSOR = 'sponsor'
    ADMIN = 'admin'


class TournamentStatus(str, Enum):
    DRAFT = 'draft'
    REGISTRATION = 'registration'
    LIVE = 'live'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


TOURNAMENT_TRANSITIONS = {
    TournamentStatus.DRAFT: {TournamentStatus.REGISTRATION, TournamentStatus.CANCELLED},
    TournamentStatus.REGISTRATION: {
        TournamentStatus.DRAFT,
        TournamentStatus.LIVE,
        TournamentStatus.CANCELLED,
    },
    TournamentStatus.LIVE: {TournamentStatus.COMPLETED, TournamentStatus.CANCELLED},
    TournamentStatus.COMPLETED: set(),
    TournamentStatus.CANCELLED: set(),
}

EDITABLE_STATUSES = (TournamentStatus.DRAFT, TournamentStatus.REGISTRATION)


class RegistrationStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'


ACTIVE_REGISTRATION_STATUSES = (RegistrationStatus.PENDING, RegistrationStatus.CONFIRMED)


class MatchStatus(str, Enum):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    DISPUTED = 'disputed'


class EloReason(str, Enum):
    RESULT = 'result'
    REVERSAL = 'reversal'


def _enum_column(enum_cls, name, default=None, nullable=False):
    return db.Column(
        db.Enum(
            enum_cls,
            name=name,
            native_enum=False,
            length=24,
            validate_strings=True,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=nullable,
        default=default,
    )


def _value(member):
    return getattr(member, 'value', member)


class User(db.Model):
    """Accounts that can log in. Roles decide what each account may manage."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(100))
    roles = db.Column(db.JSON, nullable=False, default=lambda: [Role.PLAYER.value])
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)

    tournaments_organized = db.relationship(
        'Tournament', back_populates='organizer', lazy=True, foreign_keys='Tournament.organizer_id'
    )
    memberships = db.relationship('TeamMember', back_populates='user', lazy=True)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<User {self.id} {self.username} roles={self.roles}>"

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def has_role(self, role) -> bool:
        return Role(role).value in (self.roles or [])

    @property
    def is_admin(self) -> bool:
        return self.has_role(Role.ADMIN)

    def grant_role(self, role) -> None:
        value = Role(role).value
        if value not in (self.roles or []):
            self.roles = [*(self.roles or []), value]

    @property
    def name(self) -> str:
        return self.display_name or self.username

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'username': self.username,
            'display_name': self.name,
            'roles': list(self.roles or []),
        }

    @staticmethod
    def validate_format(username: str, email: str, password: str, roles=None) -> list[str]:
        """Validate registration data format without using the database."""
        errors: list[str] = []

        if not username or len(username.strip()) < 3:
            errors.append("Username must be at least 3 characters")

        if username and not username.replace('_', '').replace('-', '').isalnum():
            errors.append("Username can only contain letters, numbers, hyphens and underscores")

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not email or not re.match(email_pattern, email):
            errors.append("Valid email required")

        if not password or len(password) < 8:
            errors.append("Password must be at least 8 characters")

        for role in roles or []:
            if role not in {member.value for member in Role} or role == Role.ADMIN.value:
                errors.append(f"Invalid role selected: {role}")

        return errors


class Game(db.Model):
    __tablename__ = 'games'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    icon = db.Column(db.String(255))
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Game {self.id} {self.name}>"

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name, 'icon': self.icon, 'description': self.description}


class Team(db.Model):
    __tablename__ = 'teams'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    tag = db.Column(db.String(10))
    description = db.Column(db.Text)
    captain_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    max_members = db.Column(db.Integer, nullable=False, default=5)
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)

    captain = db.relationship('User', foreign_keys=[captain_id])
    members = db.relationship(
        'TeamMember',
        back_populates='team',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='TeamMember.id',
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Team {self.id} {self.name}>"

    @validates('max_members')
    def validate_max_members(self, key, value):
        if value is None or int(value) < 1:
            raise ValueError('A team needs room for at least one member')
        return int(value)

    @classmethod
    def create(cls, name: str, captain: 'User', tag=None, description=None, max_members=5) -> 'Team':
        """Create a team with ``captain`` as its first member."""
        name = (name or '').strip()
        if not name:
            raise ValueError('Team name is required')
        if cls.query.filter(func.lower(cls.name) == name.lower()).first():
            raise Duplicate('A team with this name already exists')

        team = cls(
            name=name,
            tag=tag,
            description=description,
            captain_id=captain.id,
            max_members=max_members,
        )
        team.members.append(TeamMember(user_id=captain.id, role='captain'))
        db.session.add(team)
        return team

    def is_member(self, user_id: int) -> bool:
        return any(member.user_id == user_id for member in self.members)

    def add_member(self, user: 'User', actor: 'User') -> 'TeamMember':
        if actor.id != self.captain_id and not actor.is_admin:
            raise NotCaptain()
        if self.is_member(user.id):
            raise Duplicate('User is already on this team')
        if len(self.members) >= self.max_members:
            raise Full('Team roster is full')
        member = TeamMember(user_id=user.id, role='member')
        self.members.append(member)
        return member

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'tag': self.tag,
            'description': self.description,
            'captain_id': self.captain_id,
            'max_members': self.max_members,
            'members': [member.to_dict() for member in self.members],
        }


class TeamMember(db.Model):
    __tablename__ = 'team_members'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='member')
    joined_at = db.Column(db.DateTime(timezone=True), default=current_time)

    __table_args__ = (db.UniqueConstraint('team_id', 'user_id', name='unique_team_member'),)

    team = db.relationship('Team', back_populates='members')
    user = db.relationship('User', back_populates='memberships')

    def to_dict(self) -> dict:
        return {
            'user_id': self.user_id,
            'username': self.user.username if self.user else None,
            'role': self.role,
        }


class Tournament(db.Model):
    __tablename__ = 'tournaments'

    EDITABLE_FIELDS = (
        'name',
        'description',
        'game_id',
        'bracket_type',
        'max_participants',
        'is_team_based',
        'team_size',
        'prize_pool',
        'prize_distribution',
        'registration_fee',
        'rules',
        'banner_url',
    )
    SCHEDULE_FIELDS = ('start_date', 'end_date', 'registration_deadline')

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id'), nullable=False)
    organizer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    bracket_type = _enum_column(BracketType, 'bracket_type', default=BracketType.SINGLE_ELIMINATION)
    max_participants = db.Column(db.Integer, nullable=False, default=16)
    is_team_based = db.Column(db.Boolean, nullable=False, default=False)
    team_size = db.Column(db.Integer)
    prize_pool = db.Column(db.Float, default=0)
    prize_distribution = db.Column(db.JSON, default=dict)
    registration_fee = db.Column(db.Float, default=0)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True))
    registration_deadline = db.Column(db.DateTime(timezone=True))
    status = _enum_column(TournamentStatus, 'tournament_status', default=TournamentStatus.DRAFT)
    rules = db.Column(db.Text)
    banner_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)
    updated_at = db.Column(db.DateTime(timezone=True), default=current_time, onupdate=current_time)

    organizer = db.relationship('User', back_populates='tournaments_organized', foreign_keys=[organizer_id])
    game = db.relationship('Game')
    registrations = db.relationship(
        'Registration', back_populates='tournament', lazy=True, order_by='Registration.id'
    )
    matches = db.relationship(
        'Match',
        back_populates='tournament',
        lazy=True,
        foreign_keys='Match.tournament_id',
        order_by='Match.id',
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Tournament {self.id} {self.name} {_value(self.status)}>"

    @validates('max_participants')
    def validate_max_participants(self, key, value):
        if value is None or int(value) < 2:
            raise ValueError('A tournament needs room for at least 2 participants')
        return int(value)

    @validates('start_date', 'end_date', 'registration_deadline')
    def validate_schedule(self, key, value):
        start = value if key == 'start_date' else self.start_date
        end = value if key == 'end_date' else self.end_date
        deadline = value if key == 'registration_deadline' else self.registration_deadline
        if start and end and as_aware(end) <= as_aware(start):
            raise ValueError('End date must be after the start date')
        if start and deadline and as_aware(deadline) >= as_aware(start):
            raise ValueError('Registration deadline must be before the start date')
        return value

    @property
    def state(self) -> TournamentStatus:
        return TournamentStatus(self.status)

    @property
    def bracket_format(self) -> BracketType:
        return BracketType(self.bracket_type)

    def can_manage(self, user) -> bool:
        return bool(user) and (user.id == self.organizer_id or user.is_admin)

    def require_manager(self, user) -> None:
        if not self.can_manage(user):
            raise NotManager()

    def set_schedule(self, start_date, end_date=None, registration_deadline=None) -> None:
        """Replace the whole schedule without tripping the per-field checks midway."""
        self.end_date = None
        self.registration_deadline = None
        self.start_date = start_date
        self.end_date = end_date
        self.registration_deadline = registration_deadline

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def transition_to(self, new_status, actor) -> 'Tournament':
        target = TournamentStatus(new_status)
        self.require_manager(actor)
        current = self.state
        if target not in TOURNAMENT_TRANSITIONS[current]:
            raise StateConflict(f'Cannot move a tournament from {current.value} to {target.value}')

        if target is TournamentStatus.LIVE:
            if self.confirmed_count() < 2:
                raise InsufficientParticipants()
            if not self.has_bracket():
                self.generate_bracket(actor)
        elif target is TournamentStatus.COMPLETED:
            unfinished = self.unfinished_match_count()
            if unfinished:
                raise StateConflict(f'{unfinished} match(es) still need a result')
        elif target is TournamentStatus.DRAFT and self.has_bracket():
            raise StateConflict('Registration cannot be reopened for drafting once a bracket exists')

        self.status = target
        logger.info('Tournament %s moved %s -> %s by user %s', self.id, current.value, target.value, actor.id)
        return self

    def update_details(self, actor, **changes) -> 'Tournament':
        self.require_manager(actor)
        if self.state not in EDITABLE_STATUSES:
            raise StateConflict('Tournament details are frozen once it goes live')

        unknown = set(changes) - set(self.EDITABLE_FIELDS) - set(self.SCHEDULE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown tournament field(s): {', '.join(sorted(unknown))}")

        active = self.active_registration_count()
        if 'max_participants' in changes and changes['max_participants'] is not None:
            if int(changes['max_participants']) < active:
                raise StateConflict('Capacity cannot drop below the current number of registrations')
        if self.has_bracket() and 'bracket_type' in changes and changes['bracket_type'] != self.bracket_type:
            raise AlreadyGenerated('Bracket format cannot change after generation')
        if active and 'is_team_based' in changes and bool(changes['is_team_based']) != self.is_team_based:
            raise StateConflict('Participant type cannot change once registrations exist')

        if any(key in changes for key in self.SCHEDULE_FIELDS):
            self.set_schedule(
                changes.get('start_date', self.start_date),
                changes.get('end_date', self.end_date),
                changes.get('registration_deadline', self.registration_deadline),
            )
        for key in self.EDITABLE_FIELDS:
            if key in changes:
                setattr(self, key, changes[key])
        return self

    def unfinished_match_count(self) -> int:
        return Match.query.filter(
            Match.tournament_id == self.id,
            Match.status != MatchStatus.COMPLETED,
        ).count()

    def maybe_auto_complete(self) -> bool:
        if not _config('AUTO_COMPLETE_TOURNAMENTS', False):
            return False
        if self.state is not TournamentStatus.LIVE or self.unfinished_match_count():
            return False
        if self.champion_id() is None:
            return False
        self.status = TournamentStatus.COMPLETED
        logger.info('Tournament %s completed automatically', self.id)
        return True

    # ------------------------------------------------------------------
    # Registrations
    # ------------------------------------------------------------------
    def active_registrations_query(self):
        return Registration.query.filter(
            Registration.tournament_id == self.id,
            Registration.status.in_(ACTIVE_REGISTRATION_STATUSES),
        )

    def active_registration_count(self) -> int:
        return self.active_registrations_query().count()

    def confirmed_registrations(self) -> list['Registration']:
        """Confirmed registrations in seeding order: seeded first, then by sign-up time."""
        return (
            Registration.query.filter_by(tournament_id=self.id, status=RegistrationStatus.CONFIRMED)
            .order_by(
                Registration.seed.is_(None),
                Registration.seed.asc(),
                Registration.created_at.asc(),
                Registration.id.asc(),
            )
            .all()
        )

    def confirmed_count(self) -> int:
        return Registration.query.filter_by(
            tournament_id=self.id, status=RegistrationStatus.CONFIRMED
        ).count()

    def registrations_locked(self) -> bool:
        return self.state not in EDITABLE_STATUSES or self.has_bracket()

    def is_registration_open(self, now: datetime | None = None) -> bool:
        if self.state is not TournamentStatus.REGISTRATION or self.has_bracket():
            return False
        now = now or current_time()
        return self.registration_deadline is None or now < as_aware(self.registration_deadline)

    def register(self, actor, team: 'Team | None' = None) -> 'Registration':
        """Sign ``actor`` (or the team they captain) up as a pending participant."""
        if self.state is not TournamentStatus.REGISTRATION or self.has_bracket():
            raise Closed()
        if not self.is_registration_open():
            raise Closed('The registration deadline has passed')

        if self.is_team_based:
            if team is None:
                raise ValueError('Team tournaments need a team to register')
            if team.captain_id != actor.id:
                raise NotCaptain()
        elif team is not None:
            raise ValueError('This tournament is for individual players')

        if self.active_registration_count() >= self.max_participants:
            raise Full()

        existing = self.active_registrations_query()
        if team is not None:
            existing = existing.filter(Registration.team_id == team.id)
        else:
            existing = existing.filter(Registration.user_id == actor.id)
        if existing.first() is not None:
            raise Duplicate(
                'This team is already registered for this tournament' if team else None
            )

        registration = Registration(
            tournament_id=self.id,
            user_id=None if team is not None else actor.id,
            team_id=team.id if team is not None else None,
            status=RegistrationStatus.PENDING,
        )
        db.session.add(registration)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise Duplicate() from exc
        logger.info('Registration %s created for tournament %s', registration.id, self.id)
        return registration

    def assign_seeds(self, ordered_registration_ids, actor) -> list['Registration']:
        self.require_manager(actor)
        if self.registrations_locked():
            raise Locked('Seeds are fixed once the bracket is generated')

        confirmed = {reg.id: reg for reg in self.confirmed_registrations()}
        ordered = [int(reg_id) for reg_id in ordered_registration_ids]
        if len(set(ordered)) != len(ordered):
            raise ValueError('A registration can only be seeded once')
        missing = [reg_id for reg_id in ordered if reg_id not in confirmed]
        if missing:
            raise NotFound(f'No confirmed registration with id {missing[0]} in this tournament')

        for registration in confirmed.values():
            registration.seed = None
        for seed, reg_id in enumerate(ordered, start=1):
            confirmed[reg_id].seed = seed
        return [confirmed[reg_id] for reg_id in ordered]

    # ------------------------------------------------------------------
    # Brackets
    # ------------------------------------------------------------------
    def has_bracket(self) -> bool:
        if self.id is None:
            return False
        return Match.query.filter_by(tournament_id=self.id).first() is not None

    def generate_bracket(self, actor) -> list['Match']:
        self.require_manager(actor)
        if self.state not in (TournamentStatus.REGISTRATION, TournamentStatus.LIVE):
            raise StateConflict('Brackets are generated once registration has opened')
        if self.has_bracket():
            raise AlreadyGenerated()

        participants = [reg.participant_id for reg in self.confirmed_registrations()]
        plan = generate_plan(self.bracket_type, participants)
        matches = self._materialize(plan.nodes)
        logger.info(
            'Generated %s bracket for tournament %s: %d participants, %d matches',
            plan.bracket_type.value,
            self.id,
            plan.participant_count,
            len(matches),
        )
        return matches

    def generate_playoff(self, top_n: int, actor) -> list['Match']:
        """Seed a single-elimination playoff from the round-robin table."""
        self.require_manager(actor)
        if self.bracket_format is not BracketType.ROUND_ROBIN:
            raise StateConflict('Playoffs follow a round-robin stage only')
        if self.state is not TournamentStatus.LIVE:
            raise StateConflict('Playoffs are generated while the tournament is live')
        if not self.has_bracket():
            raise StateConflict('Generate the round-robin schedule first')
        if Match.query.filter_by(tournament_id=self.id, bracket_side=BracketSide.PLAYOFF).first():
            raise AlreadyGenerated('Playoff bracket has already been generated')
        pending = Match.query.filter(
            Match.tournament_id == self.id,
            Match.bracket_side == BracketSide.ROUND_ROBIN,
            Match.status != MatchStatus.COMPLETED,
        ).count()
        if pending:
            raise StateConflict('Finish every round-robin match before seeding the playoff')

        standings = self.standings()
        top_n = int(top_n)
        if top_n < 2:
            raise InsufficientParticipants()
        if top_n > len(standings):
            raise ValueError(f'Only {len(standings)} participants are in the standings')

        last_round = db.session.query(func.max(Match.round_number)).filter(
            Match.tournament_id == self.id,
            Match.bracket_side == BracketSide.ROUND_ROBIN,
        ).scalar() or 0
        plan = single_elimination(
            [row['participant_id'] for row in standings[:top_n]],
            side=BracketSide.PLAYOFF,
            round_offset=last_round,
        )
        matches = self._materialize(plan.nodes)
        logger.info('Generated %d-way playoff for tournament %s', top_n, self.id)
        return matches

    def _materialize(self, nodes) -> list['Match']:
        created = {}
        for node in nodes:
            created[node] = Match(
                tournament_id=self.id,
                bracket_side=node.side,
                round_number=node.round_number,
                match_number=node.match_number,
                stage=node.stage,
                participant1_id=node.participant1_id,
                participant2_id=node.participant2_id,
                is_bye=node.is_bye,
                status=MatchStatus.PENDING,
                next_slot=node.next_slot,
                loser_next_slot=node.loser_next_slot,
            )
        for node, match in created.items():
            if node.next_match is not None:
                match.next_match = created[node.next_match]
            if node.loser_next_match is not None:
                match.loser_next_match = created[node.loser_next_match]

        db.session.add_all(created.values())
        for node, match in created.items():
            if node.is_bye:
                match.complete_bye()
        db.session.flush()
        return list(created.values())

    def bracket(self) -> dict:
        """Matches grouped by bracket side, then round."""
        grouped: dict[str, dict[int, list]] = {}
        matches = Match.query.filter_by(tournament_id=self.id).order_by(
            Match.round_number, Match.match_number
        )
        names = self.participant_names()
        for match in matches:
            side = grouped.setdefault(_value(match.bracket_side), {})
            side.setdefault(match.round_number, []).append(match.to_dict(names))
        return {
            side: [{'round': number, 'matches': rounds[number]} for number in sorted(rounds)]
            for side, rounds in grouped.items()
        }

    def final_match(self) -> 'Match | None':
        side = {
            BracketType.SINGLE_ELIMINATION: BracketSide.WINNERS,
            BracketType.DOUBLE_ELIMINATION: BracketSide.GRAND_FINAL,
            BracketType.ROUND_ROBIN: BracketSide.PLAYOFF,
        }[self.bracket_format]
        return (
            Match.query.filter_by(tournament_id=self.id, bracket_side=side)
            .order_by(Match.round_number.desc())
            .first()
        )

    def champion_id(self) -> int | None:
        final = self.final_match()
        if final is not None:
            return final.winner_id if final.state is MatchStatus.COMPLETED else None
        if self.bracket_format is BracketType.ROUND_ROBIN and self.has_bracket() and not self.unfinished_match_count():
            table = self.standings()
            return table[0]['participant_id'] if table else None
        return None

    def standings(self) -> list[dict]:
        """Win/loss table over completed head-to-head matches.

        Ties on wins fall back to score difference, then points scored, then
        seeding order.
        """
        participants = [reg.participant_id for reg in self.confirmed_registrations()]
        table = {
            pid: {
                'participant_id': pid,
                'played': 0,
                'wins': 0,
                'losses': 0,
                'score_for': 0,
                'score_against': 0,
            }
            for pid in participants
        }

        query = Match.query.filter_by(tournament_id=self.id, status=MatchStatus.COMPLETED, is_bye=False)
        if self.bracket_format is BracketType.ROUND_ROBIN:
            query = query.filter(Match.bracket_side == BracketSide.ROUND_ROBIN)
        for match in query:
            for pid, own, other in (
                (match.participant1_id, match.participant1_score, match.participant2_score),
                (match.participant2_id, match.participant2_score, match.participant1_score),
            ):
                row = table.get(pid)
                if row is None:
                    continue
                row['played'] += 1
                if match.winner_id == pid:
                    row['wins'] += 1
                else:
                    row['losses'] += 1
                row['score_for'] += own or 0
                row['score_against'] += other or 0

        order = {pid: idx for idx, pid in enumerate(participants)}
        names = self.participant_names(participants)
        rows = sorted(
            table.values(),
            key=lambda row: (
                -row['wins'],
                -(row['score_for'] - row['score_against']),
                -row['score_for'],
                order[row['participant_id']],
            ),
        )
        for rank, row in enumerate(rows, start=1):
            row['rank'] = rank
            row['score_diff'] = row['score_for'] - row['score_against']
            row['name'] = names.get(row['participant_id'])
        return rows

    def participant_names(self, ids=None) -> dict[int, str]:
        if ids is None:
            ids = {reg.participant_id for reg in self.registrations}
        ids = [pid for pid in ids if pid is not None]
        if not ids:
            return {}
        if self.is_team_based:
            return {team.id: team.name for team in Team.query.filter(Team.id.in_(ids))}
        return {user.id: user.name for user in User.query.filter(User.id.in_(ids))}

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'game_id': self.game_id,
            'game': self.game.name if self.game else None,
            'organizer_id': self.organizer_id,
            'bracket_type': _value(self.bracket_type),
            'status': _value(self.status),
            'max_participants': self.max_participants,
            'is_team_based': self.is_team_based,
            'team_size': self.team_size,
            'prize_pool': self.prize_pool,
            'prize_distribution': self.prize_distribution or {},
            'registration_fee': self.registration_fee,
            'start_date': _isoformat(self.start_date),
            'end_date': _isoformat(self.end_date),
            'registration_deadline': _isoformat(self.registration_deadline),
            'rules': self.rules,
            'banner_url': self.banner_url,
            'registered_count': self.active_registration_count(),
            'confirmed_count': self.confirmed_count(),
            'champion_id': self.champion_id(),
        }


def _isoformat(value: datetime | None) -> str | None:
    return as_aware(value).isoformat() if value else None


class Registration(db.Model):
    """A user's or team's entry into a tournament."""

    __tablename__ = 'tournament_registrations'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'))
    status = _enum_column(RegistrationStatus, 'registration_status', default=RegistrationStatus.PENDING)
    seed = db.Column(db.Integer)
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)
    status_updated_at = db.Column(db.DateTime(timezone=True), default=current_time)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    __table_args__ = (
        db.CheckConstraint(
            '(user_id IS NULL) <> (team_id IS NULL)', name='ck_registration_single_participant'
        ),
        db.Index(
            'uq_registration_active_user',
            'tournament_id',
            'user_id',
            unique=True,
            sqlite_where=db.text("status IN ('pending', 'confirmed') AND user_id IS NOT NULL"),
            postgresql_where=db.text("status IN ('pending', 'confirmed') AND user_id IS NOT NULL"),
        ),
        db.Index(
            'uq_registration_active_team',
            'tournament_id',
            'team_id',
            unique=True,
            sqlite_where=db.text("status IN ('pending', 'confirmed') AND team_id IS NOT NULL"),
            postgresql_where=db.text("status IN ('pending', 'confirmed') AND team_id IS NOT NULL"),
        ),
    )

    tournament = db.relationship('Tournament', back_populates='registrations')
    user = db.relationship('User', foreign_keys=[user_id])
    team = db.relationship('Team')
    reviewer = db.relationship('User', foreign_keys=[reviewed_by])

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Registration {self.id} t={self.tournament_id} {_value(self.status)}>"

    @property
    def participant_id(self) -> int:
        return self.team_id if self.team_id is not None else self.user_id

    @property
    def state(self) -> RegistrationStatus:
        return RegistrationStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_REGISTRATION_STATUSES

    def can_be_cancelled_by(self, user) -> bool:
        if user is None:
            return False
        if self.team_id is not None:
            return self.team is not None and self.team.captain_id == user.id
        return self.user_id == user.id

    def set_status(self, new_status, actor=None) -> None:
        self.status = RegistrationStatus(new_status)
        self.status_updated_at = current_time()
        self.reviewed_by = actor.id if actor else None

    def update_status(self, new_status, actor) -> 'Registration':
        target = RegistrationStatus(new_status)
        tournament = self.tournament
        tournament.require_manager(actor)
        if tournament.registrations_locked():
            raise Locked()
        if self.state is not RegistrationStatus.PENDING or target not in (
            RegistrationStatus.CONFIRMED,
            RegistrationStatus.REJECTED,
        ):
            raise StateConflict(f'Cannot move a registration from {self.state.value} to {target.value}')
        self.set_status(target, actor)
        logger.info('Registration %s %s by user %s', self.id, target.value, actor.id)
        return self

    def cancel(self, actor) -> 'Registration':
        if not self.can_be_cancelled_by(actor):
            raise NotCaptain() if self.team_id is not None else NotOwner()
        if self.tournament.state is not TournamentStatus.REGISTRATION or self.tournament.has_bracket():
            raise Locked()
        if not self.is_active:
            raise StateConflict('Registration is no longer active')
        self.set_status(RegistrationStatus.CANCELLED)
        logger.info('Registration %s cancelled by user %s', self.id, actor.id)
        return self

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'user_id': self.user_id,
            'team_id': self.team_id,
            'participant_id': self.participant_id,
            'status': _value(self.status),
            'seed': self.seed,
            'created_at': _isoformat(self.created_at),
        }


class Match(db.Model):
    __tablename__ = 'tournament_matches'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False)
    bracket_side = _enum_column(BracketSide, 'bracket_side', default=BracketSide.WINNERS)
    round_number = db.Column(db.Integer, nullable=False)
    match_number = db.Column(db.Integer, nullable=False)
    stage = db.Column(db.String(50))
    participant1_id = db.Column(db.Integer)
    participant2_id = db.Column(db.Integer)
    participant1_score = db.Column(db.Integer)
    participant2_score = db.Column(db.Integer)
    winner_id = db.Column(db.Integer)
    status = _enum_column(MatchStatus, 'match_status', default=MatchStatus.PENDING)
    is_bye = db.Column(db.Boolean, nullable=False, default=False)
    scheduled_at = db.Column(db.DateTime(timezone=True))
    notes = db.Column(db.Text)
    next_match_id = db.Column(db.Integer, db.ForeignKey('tournament_matches.id'))
    next_slot = db.Column(db.Integer)
    loser_next_match_id = db.Column(db.Integer, db.ForeignKey('tournament_matches.id'))
    loser_next_slot = db.Column(db.Integer)
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)
    updated_at = db.Column(db.DateTime(timezone=True), default=current_time, onupdate=current_time)
    completed_at = db.Column(db.DateTime(timezone=True))
    version_id = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.UniqueConstraint(
            'tournament_id', 'bracket_side', 'round_number', 'match_number', name='unique_match_position'
        ),
    )
    __mapper_args__ = {'version_id_col': version_id}

    tournament = db.relationship('Tournament', back_populates='matches', foreign_keys=[tournament_id])
    next_match = db.relationship('Match', remote_side=[id], foreign_keys=[next_match_id])
    loser_next_match = db.relationship('Match', remote_side=[id], foreign_keys=[loser_next_match_id])

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Match {self.id} {_value(self.bracket_side)} R{self.round_number} M{self.match_number}>"

    @property
    def state(self) -> MatchStatus:
        return MatchStatus(self.status)

    @property
    def participants(self) -> tuple:
        return (self.participant1_id, self.participant2_id)

    @property
    def is_ready(self) -> bool:
        return self.participant1_id is not None and self.participant2_id is not None

    @property
    def loser_id(self) -> int | None:
        if self.winner_id is None or self.is_bye:
            return None
        return self.participant2_id if self.winner_id == self.participant1_id else self.participant1_id

    @property
    def is_grand_final(self) -> bool:
        return self.bracket_side == BracketSide.GRAND_FINAL and self.round_number == 1

    def assign_slot(self, slot: int, participant_id: int) -> None:
        if slot not in (1, 2):
            raise ValueError('Bracket slot must be 1 or 2')
        attr = 'participant1_id' if slot == 1 else 'participant2_id'
        current = getattr(self, attr)
        if current is not None and current != participant_id:
            raise StateConflict(f'Slot {slot} of match {self.id} is already taken')
        if self.state is not MatchStatus.PENDING:
            raise StateConflict(f'Match {self.id} is already under way')
        setattr(self, attr, participant_id)

    def clear_slot(self, slot: int) -> None:
        setattr(self, 'participant1_id' if slot == 1 else 'participant2_id', None)

    def complete_bye(self) -> None:
        winner = self.participant1_id if self.participant1_id is not None else self.participant2_id
        self.winner_id = winner
        self.status = MatchStatus.COMPLETED
        self.completed_at = current_time()
        if self.next_match is not None and winner is not None:
            self.next_match.assign_slot(self.next_slot, winner)

    def downstream_matches(self) -> list['Match']:
        return [match for match in (self.next_match, self.loser_next_match) if match is not None]

    def _require_live(self, action: str):
        tournament = self.tournament
        if tournament.state is not TournamentStatus.LIVE:
            raise StateConflict(f'Matches can only be {action} while the tournament is live')
        return tournament

    def start(self, actor) -> 'Match':
        self.tournament.require_manager(actor)
        self._require_live('started')
        if self.state is not MatchStatus.PENDING:
            raise StateConflict(f'Match is already {self.state.value}')
        if not self.is_ready:
            raise StateConflict('Both participants must be known before the match starts')
        self.status = MatchStatus.IN_PROGRESS
        return self

    def mark_disputed(self, actor, notes: str | None = None) -> 'Match':
        self.tournament.require_manager(actor)
        self._require_live('disputed')
        if self.is_bye or self.state is MatchStatus.DISPUTED:
            raise StateConflict('Match cannot be disputed')
        self.status = MatchStatus.DISPUTED
        if notes:
            self.notes = f'{self.notes}\n{notes}' if self.notes else notes
        logger.info('Match %s flagged as disputed by user %s', self.id, actor.id)
        return self

    def record_result(self, winner_id, score1=None, score2=None, actor=None) -> 'Match':
        """Store the result and push both participants along the bracket graph.

        Re-entering a decided match with the same winner only corrects the
        score; a different winner needs :meth:`reopen` first.
        """
        tournament = self.tournament
        tournament.require_manager(actor)
        self._require_live('reported')
        if self.is_bye:
            raise StateConflict('Byes advance automatically')
        if winner_id is None or not self.is_ready or int(winner_id) not in self.participants:
            raise InvalidWinner()
        winner_id = int(winner_id)
        score1, score2 = _clean_score(score1), _clean_score(score2)

        if self.winner_id is not None:
            if self.winner_id != winner_id:
                raise StateConflict('Reopen the match before changing its winner')
            self.participant1_score, self.participant2_score = score1, score2
            self.status = MatchStatus.COMPLETED
            return self

        self.participant1_score, self.participant2_score = score1, score2
        self.winner_id = winner_id
        self.status = MatchStatus.COMPLETED
        self.completed_at = current_time()
        loser_id = self.loser_id

        if self.is_grand_final and winner_id == self.participant2_id and self.next_match is None:
            self._create_bracket_reset()
        if self.next_match is not None:
            self.next_match.assign_slot(self.next_slot, winner_id)
        if self.loser_next_match is not None:
            self.loser_next_match.assign_slot(self.loser_next_slot, loser_id)

        logger.info('Match %s won by %s over %s', self.id, winner_id, loser_id)
        if not tournament.is_team_based:
            update_elo_after_match(self, winner_id, loser_id, tournament.game_id)
        tournament.maybe_auto_complete()
        return self

    def _create_bracket_reset(self) -> 'Match':
        reset = Match(
            tournament_id=self.tournament_id,
            bracket_side=BracketSide.GRAND_FINAL,
            round_number=2,
            match_number=1,
            stage=RESET_STAGE,
            status=MatchStatus.PENDING,
            is_bye=False,
        )
        db.session.add(reset)
        # losers champion keeps slot 2 in the rematch
        self.next_match, self.next_slot = reset, 2
        self.loser_next_match, self.loser_next_slot = reset, 1
        return reset

    def reopen(self, actor) -> 'Match':
        """Undo a decided result so it can be entered again."""
        tournament = self.tournament
        tournament.require_manager(actor)
        self._require_live('reopened')
        if self.is_bye or self.winner_id is None:
            raise StateConflict('Only decided matches can be reopened')
        if any(match.state is not MatchStatus.PENDING for match in self.downstream_matches()):
            raise StateConflict('A later match has already started with this result')
        if self.bracket_side == BracketSide.ROUND_ROBIN and Match.query.filter_by(
            tournament_id=self.tournament_id, bracket_side=BracketSide.PLAYOFF
        ).first():
            raise StateConflict('The playoff has already been seeded from these results')

        if not tournament.is_team_based:
            reverse_elo_for_match(self)

        reset = self.next_match if self.is_grand_final and self.next_match is not None else None
        if reset is not None:
            self.next_match = self.loser_next_match = None
            self.next_slot = self.loser_next_slot = None
            db.session.delete(reset)
        else:
            for target, slot in ((self.next_match, self.next_slot), (self.loser_next_match, self.loser_next_slot)):
                if target is not None:
                    target.clear_slot(slot)

        self.winner_id = None
        self.participant1_score = self.participant2_score = None
        self.status = MatchStatus.PENDING
        self.completed_at = None
        logger.info('Match %s reopened by user %s', self.id, actor.id)
        return self

    def to_dict(self, names: dict | None = None) -> dict:
        names = names or {}
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'bracket_side': _value(self.bracket_side),
            'round_number': self.round_number,
            'match_number': self.match_number,
            'stage': self.stage,
            'participant1_id': self.participant1_id,
            'participant2_id': self.participant2_id,
            'participant1_name': names.get(self.participant1_id),
            'participant2_name': names.get(self.participant2_id),
            'participant1_score': self.participant1_score,
            'participant2_score': self.participant2_score,
            'winner_id': self.winner_id,
            'status': _value(self.status),
            'is_bye': self.is_bye,
            'next_match_id': self.next_match_id,
            'next_slot': self.next_slot,
            'loser_next_match_id': self.loser_next_match_id,
            'loser_next_slot': self.loser_next_slot,
            'scheduled_at': _isoformat(self.scheduled_at),
            'completed_at': _isoformat(self.completed_at),
            'notes': self.notes,
        }


def _clean_score(value) -> int | None:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValueError('Scores must be whole numbers')
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise ValueError('Scores must be whole numbers') from None
    if score != value and str(score) != str(value).strip():
        raise ValueError('Scores must be whole numbers')
    if score < 0:
        raise ValueError('Scores cannot be negative')
    return score


class PlayerRanking(db.Model):
    __tablename__ = 'player_rankings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id'), nullable=False)
    elo_rating = db.Column(db.Float, nullable=False, default=rating.STARTING_ELO)
    peak_elo = db.Column(db.Float, nullable=False, default=rating.STARTING_ELO)
    wins = db.Column(db.Integer, nullable=False, default=0)
    losses = db.Column(db.Integer, nullable=False, default=0)
    matches_played = db.Column(db.Integer, nullable=False, default=0)
    win_streak = db.Column(db.Integer, nullable=False, default=0)
    best_win_streak = db.Column(db.Integer, nullable=False, default=0)
    last_match_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)
    updated_at = db.Column(db.DateTime(timezone=True), default=current_time, onupdate=current_time)
    version_id = db.Column(db.Integer, nullable=False)

    __table_args__ = (db.UniqueConstraint('user_id', 'game_id', name='unique_player_game_ranking'),)
    __mapper_args__ = {'version_id_col': version_id}

    user = db.relationship('User')
    game = db.relationship('Game')

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<PlayerRanking user={self.user_id} game={self.game_id} elo={self.elo_rating:.1f}>"

    @classmethod
    def for_player(cls, user_id: int, game_id: int) -> 'PlayerRanking':
        ranking = cls.query.filter_by(user_id=user_id, game_id=game_id).first()
        if ranking is None:
            starting = float(_config('STARTING_ELO', rating.STARTING_ELO))
            ranking = cls(
                user_id=user_id,
                game_id=game_id,
                elo_rating=starting,
                peak_elo=starting,
                wins=0,
                losses=0,
                matches_played=0,
                win_streak=0,
                best_win_streak=0,
            )
            db.session.add(ranking)
        return ranking

    @property
    def tier(self) -> str:
        return rating.rank_tier(self.elo_rating)

    @property
    def win_rate(self) -> float:
        if not self.matches_played:
            return 0.0
        return round(self.wins / self.matches_played * 100, 1)

    def apply_result(self, new_elo: float, won: bool, when: datetime) -> int:
        """Record one finished match; returns the streak before it."""
        streak_before = self.win_streak or 0
        self.elo_rating = new_elo
        self.peak_elo = max(self.peak_elo or new_elo, new_elo)
        self.matches_played += 1
        if won:
            self.wins += 1
            self.win_streak = streak_before + 1
            self.best_win_streak = max(self.best_win_streak or 0, self.win_streak)
        else:
            self.losses += 1
            self.win_streak = 0
        self.last_match_at = when
        return streak_before

    def revert_result(self, elo_change: float, won: bool, restore_streak: int | None = None) -> None:
        self.elo_rating = max(rating.MIN_ELO, self.elo_rating - elo_change)
        self.matches_played = max(0, self.matches_played - 1)
        if won:
            self.wins = max(0, self.wins - 1)
        else:
            self.losses = max(0, self.losses - 1)
        if restore_streak is not None:
            self.win_streak = restore_streak

    @classmethod
    def leaderboard(cls, game_id: int | None = None, limit: int = 50) -> list['PlayerRanking']:
        query = cls.query
        if game_id is not None:
            query = query.filter_by(game_id=game_id)
        return query.order_by(cls.elo_rating.desc(), cls.wins.desc(), cls.id.asc()).limit(limit).all()

    def to_dict(self, rank: int | None = None) -> dict:
        return {
            'rank': rank,
            'user_id': self.user_id,
            'username': self.user.username if self.user else None,
            'game_id': self.game_id,
            'elo_rating': round(self.elo_rating, 2),
            'peak_elo': round(self.peak_elo, 2),
            'tier': self.tier,
            'wins': self.wins,
            'losses': self.losses,
            'matches_played': self.matches_played,
            'win_rate': self.win_rate,
            'win_streak': self.win_streak,
            'best_win_streak': self.best_win_streak,
            'last_match_at': _isoformat(self.last_match_at),
        }


class MatchEloHistory(db.Model):
    """Append-only log of every rating movement."""

    __tablename__ = 'match_elo_history'

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('tournament_matches.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id'), nullable=False)
    elo_before = db.Column(db.Float, nullable=False)
    elo_after = db.Column(db.Float, nullable=False)
    elo_change = db.Column(db.Float, nullable=False)
    win_streak_before = db.Column(db.Integer, nullable=False, default=0)
    reason = db.Column(db.String(20), nullable=False, default=EloReason.RESULT.value)
    created_at = db.Column(db.DateTime(timezone=True), default=current_time)

    match = db.relationship('Match')

    @classmethod
    def for_user(cls, user_id: int, game_id: int | None = None, limit: int = 20) -> list['MatchEloHistory']:
        query = cls.query.filter_by(user_id=user_id)
        if game_id is not None:
            query = query.filter_by(game_id=game_id)
        return query.order_by(cls.id.desc()).limit(limit).all()

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'match_id': self.match_id,
            'game_id': self.game_id,
            'elo_before': round(self.elo_before, 2),
            'elo_after': round(self.elo_after, 2),
            'elo_change': round(self.elo_change, 2),
            'change_display': rating.format_elo_change(self.elo_change),
            'reason': self.reason,
            'created_at': _isoformat(self.created_at),
        }


def rating_applied(match_id: int) -> bool:
    counts = dict(
        db.session.query(MatchEloHistory.reason, func.count(MatchEloHistory.id))
        .filter(MatchEloHistory.match_id == match_id)
        .group_by(MatchEloHistory.reason)
        .all()
    )
    return counts.get(EloReason.RESULT.value, 0) > counts.get(EloReason.REVERSAL.value, 0)


def update_elo_after_match(match, winner_id, loser_id, game_id, k_factor=None):
    """Move both players' ratings for a decided match.

    Returns the :class:`rating.EloOutcome`, or ``None`` when the match has
    already been rated.
    """
    if rating_applied(match.id):
        return None

    k_factor = k_factor if k_factor is not None else _config('ELO_K_FACTOR', rating.DEFAULT_K_FACTOR)
    winner = PlayerRanking.for_player(winner_id, game_id)
    loser = PlayerRanking.for_player(loser_id, game_id)
    outcome = rating.resolve_match(winner.elo_rating, loser.elo_rating, k_factor)

    now = current_time()
    for ranking, before, after, won in (
        (winner, outcome.winner_before, outcome.winner_after, True),
        (loser, outcome.loser_before, outcome.loser_after, False),
    ):
        streak_before = ranking.apply_result(after, won, now)
        db.session.add(
            MatchEloHistory(
                match_id=match.id,
                user_id=ranking.user_id,
                game_id=game_id,
                elo_before=before,
                elo_after=after,
                elo_change=after - before,
                win_streak_before=streak_before,
                reason=EloReason.RESULT.value,
            )
        )

    logger.info(
        'Match %s ratings: %s %s (expected %.0f%%), %s %s',
        match.id,
        winner_id,
        rating.format_elo_change(outcome.winner_change),
        outcome.expected_winner * 100,
        loser_id,
        rating.format_elo_change(outcome.loser_change),
    )
    return outcome


def reverse_elo_for_match(match) -> list[MatchEloHistory]:
    """Append compensating rows that undo the latest rating of ``match``."""
    if not rating_applied(match.id):
        return []

    latest: dict[int, MatchEloHistory] = {}
    for row in MatchEloHistory.query.filter_by(
        match_id=match.id, reason=EloReason.RESULT.value
    ).order_by(MatchEloHistory.id.desc()):
        latest.setdefault(row.user_id, row)

    reversals = []
    for row in latest.values():
        ranking = PlayerRanking.query.filter_by(user_id=row.user_id, game_id=row.game_id).first()
        if ranking is None:
            continue
        newest = (
            MatchEloHistory.query.filter_by(user_id=row.user_id, game_id=row.game_id)
            .order_by(MatchEloHistory.id.desc())
            .first()
        )
        before, streak = ranking.elo_rating, ranking.win_streak
        ranking.revert_result(
            row.elo_change,
            won=row.user_id == match.winner_id,
            restore_streak=row.win_streak_before if newest is row else None,
        )
        reversal = MatchEloHistory(
            match_id=match.id,
            user_id=row.user_id,
            game_id=row.game_id,
            elo_before=before,
            elo_after=ranking.elo_rating,
            elo_change=ranking.elo_rating - before,
            win_streak_before=streak,
            reason=EloReason.REVERSAL.value,
        )
        db.session.add(reversal)
        reversals.append(reversal)
    logger.info('Reversed rating changes for match %s', match.id)
    return reversals


DEFAULT_GAMES = (
    ('League of Legends', 'MOBA, 5v5'),
    ('Valorant', 'Tactical shooter, 5v5'),
    ('Counter-Strike 2', 'Tactical shooter, 5v5'),
    ('Dota 2', 'MOBA, 5v5'),
    ('Rocket League', 'Vehicular soccer, 3v3'),
    ('Street Fighter 6', 'Fighting, 1v1'),
)


def init_default_data():
    """Initialize default data for the application."""

    admin = User.query.filter_by(username='admin').first()
    if not admin:
        admin = User(
            username='admin',
            email='admin@riftarena.local',
            roles=[Role.ADMIN.value, Role.ORGANIZER.value],
        )
        admin.set_password('admin123')
        db.session.add(admin)
    else:
        admin.grant_role(Role.ADMIN)
        admin.grant_role(Role.ORGANIZER)

    existing = {name for (name,) in db.session.query(Game.name)}
    for name, description in DEFAULT_GAMES:
        if name not in existing:
            db.session.add(Game(name=name, description=description))

    db.session.commit()
