"""Organizer back office: tournament setup, registrations, brackets and results."""

from datetime import datetime
from functools import wraps

from flask import Blueprint, current_app, g, jsonify

from brackets import BracketType
from errors import NotFound
from models import (
    as_aware,
    db,
    Game,
    Match,
    Registration,
    Role,
    Tournament,
    TournamentStatus,
)
from blueprints.auth import json_body, require_role

organizer_bp = Blueprint('organizer', __name__, url_prefix='/organizer')



def parse_datetime(value, field: str) -> datetime | None:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return as_aware(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError as exc:
        raise ValueError(f'{field} must be an ISO 8601 date-time') from exc
    return as_aware(parsed)


def require_tournament_access(f):
    """Require the organizer owns the tournament (admins may manage any)."""
    @wraps(f)
    def decorated_function(tournament_id, *args, **kwargs):
        tournament = db.get_or_404(Tournament, tournament_id)
        tournament.require_manager(g.current_user)
        g.tournament_context = tournament
        return f(tournament_id, *args, **kwargs)
    return decorated_function


def _get_match(match_id: int) -> Match:
    match = db.session.get(Match, match_id)
    if match is None:
        raise NotFound('Match not found')
    return match


def _match_payload(match: Match):
    return jsonify(match.to_dict(match.tournament.participant_names(match.participants)))


@organizer_bp.route('/tournaments', methods=['POST'])
@require_role(Role.ORGANIZER.value)
def create_tournament():
    """Create a new tournament in draft."""
    data = json_body()
    name = (data.get('name') or '').strip()
    if not name:
        raise ValueError('Tournament name is required')

    game = db.session.get(Game, data.get('game_id')) if data.get('game_id') else None
    if game is None:
        raise NotFound('Unknown game')

    start_date = parse_datetime(data.get('start_date'), 'start_date')
    if start_date is None:
        raise ValueError('start_date is required')

    tournament = Tournament(
        name=name,
        description=data.get('description'),
        game_id=game.id,
        organizer_id=g.current_user.id,
        bracket_type=BracketType(data.get('bracket_type') or BracketType.SINGLE_ELIMINATION.value),
        max_participants=data.get('max_participants', 16),
        is_team_based=bool(data.get('is_team_based', False)),
        team_size=data.get('team_size'),
        prize_pool=data.get('prize_pool') or 0,
        prize_distribution=data.get('prize_distribution') or {},
        registration_fee=data.get('registration_fee') or 0,
        rules=data.get('rules'),
        banner_url=data.get('banner_url'),
        status=TournamentStatus.DRAFT,
    )
    tournament.set_schedule(
        start_date,
        parse_datetime(data.get('end_date'), 'end_date'),
        parse_datetime(data.get('registration_deadline'), 'registration_deadline'),
    )
    db.session.add(tournament)
    db.session.commit()

    current_app.logger.info('Tournament %s "%s" created by %s', tournament.id, tournament.name, g.current_user.username)
    return jsonify(tournament.to_dict()), 201


@organizer_bp.route('/tournaments')
@require_role(Role.ORGANIZER.value)
def list_tournaments():
    query = Tournament.query
    if not g.current_user.is_admin:
        query = query.filter_by(organizer_id=g.current_user.id)
    tournaments = query.order_by(Tournament.start_date.asc()).all()
    return jsonify([tournament.to_dict() for tournament in tournaments])


@organizer_bp.route('/tournaments/<int:tournament_id>', methods=['PATCH'])
@require_role(Role.ORGANIZER.value)
@require_tournament_access
def update_tournament(tournament_id):
    tournament = g.tournament_context
    changes = dict(json_body())
    for field in Tournament.SCHEDULE_FIELDS:
        if field in changes:
            changes[field] = parse_datetime(changes[field], field)
    if changes.get('bracket_type'):
        changes['bracket_type'] = BracketType(changes['bracket_type'])

    tournament.update_details(g.current_user, **changes)
    db.session.commit()
    return jsonify(tournament.to_dict())


@organizer_bp.route('/tournaments/<int:tournament_id>/status', methods=['POST'])
@require_role(Role.ORGANIZER.value)
@require_tournament_access
def change_status(tournament_id):
    tournament = g.tournament_context
    tournament.transition_to(json_body().get('status'), g.current_user)
    db.session.commit()
    return jsonify(tournament.to_dict())


@organizer_bp.route('/tournaments/<int:tournament_id>/registrations')
@require_role(Role.ORGANIZER.value)
@require_tournament_access
def list_registrations(tournament_id):
    tournament = g.tournament_context
    names = tournament.participant_names()
    payload = []
    for registration in tournament.registrations:
        entry = registration.to_dict()
        entry['name'] = names.get(registration.participant_id)
        payload.append(entry)
    return jsonify(payload)


@organizer_bp.route('/tournaments/<int:tournament_id>/seeds', methods=['PUT'])
@require_role(Role.ORGANIZER.value)
@require_tournament_access
def assign_seeds(tournament_id):
    tournament = g.tournament_context
    registration_ids = json_body().get('registration_ids') or []
    seeded = tournament.assign_seeds(registration_ids, g.current_user)
    db.session.commit()
    return jsonify([registration.to_dict() for registration in seeded])


@organizer_bp.route('/tournaments/<int:tournament_id>/bracket', methods=['POST'])
@require_role(Role.ORGANIZER.value)
@require_tournament_access
def generate_bracket(tournament_id):
    tournament = g.tournament_context
    tournament.generate_bracket(g.current_user)
    db.session.commit()
    return jsonify(tournament.bracket()), 201


@organizer_bp.route('/tournaments/<int:tournament_id>/playoff', methods=['POST'])
@require_role(Role.ORGANIZER.value)
@require_tournament_access
def generate_playoff(tournament_id):
    tournament = g.tournament_context
    top_n = json_body().get('top_n', 4)
    tournament.generate_playoff(top_n, g.current_user)
    db.session.commit()
    return jsonify(tournament.bracket()), 201


@organizer_bp.route('/registrations/<int:registration_id>/status', methods=['POST'])
@require_role(Role.ORGANIZER.value)
def review_registration(registration_id):
    registration = db.session.get(Registration, registration_id)
    if registration is None:
        raise NotFound('Registration not found')
    registration.update_status(json_body().get('status'), g.current_user)
    db.session.commit()
    return jsonify(registration.to_dict())


@organizer_bp.route('/matches/<int:match_id>/result', methods=['POST'])
@require_role(Role.ORGANIZER.value)
def record_result(match_id):
    """Enter a match result and advance the bracket."""
    match = _get_match(match_id)
    data = json_body()
    match.record_result(
        data.get('winner_id'),
        data.get('score1'),
        data.get('score2'),
        actor=g.current_user,
    )
    db.session.commit()
    return _match_payload(match)


@organizer_bp.route('/matches/<int:match_id>/start', methods=['POST'])
@require_role(Role.ORGANIZER.value)
def start_match(match_id):
    match = _get_match(match_id)
    match.start(g.current_user)
    db.session.commit()
    return _match_payload(match)


@organizer_bp.route('/matches/<int:match_id>/dispute', methods=['POST'])
@require_role(Role.ORGANIZER.value)
def dispute_match(match_id):
    match = _get_match(match_id)
    match.mark_disputed(g.current_user, json_body().get('notes'))
    db.session.commit()
    return _match_payload(match)


@organizer_bp.route('/matches/<int:match_id>/reopen', methods=['POST'])
@require_role(Role.ORGANIZER.value)
def reopen_match(match_id):
    match = _get_match(match_id)
    match.reopen(g.current_user)
    db.session.commit()
    return _match_payload(match)
