from flask import Blueprint, current_app, g, jsonify
from sqlalchemy import or_

from errors import NotFound
from models import (
    db,
    Registration,
    Team,
    TeamMember,
    Tournament,
    User,
)
from blueprints.auth import json_body, login_required

player_bp = Blueprint('player', __name__, url_prefix='/player')


def _get_team(team_id) -> Team:
    team = db.session.get(Team, team_id) if team_id not in (None, '') else None
    if team is None:
        raise NotFound('Team not found')
    return team


@player_bp.route('/teams', methods=['POST'])
@login_required
def create_team():
    data = json_body()
    team = Team.create(
        data.get('name'),
        g.current_user,
        tag=(data.get('tag') or '').strip() or None,
        description=data.get('description'),
        max_members=data.get('max_members', 5),
    )
    db.session.commit()
    current_app.logger.info('Team %s "%s" created by %s', team.id, team.name, g.current_user.username)
    return jsonify(team.to_dict()), 201


@player_bp.route('/teams')
@login_required
def my_teams():
    teams = (
        Team.query.join(TeamMember)
        .filter(TeamMember.user_id == g.current_user.id)
        .order_by(Team.name.asc())
        .all()
    )
    return jsonify([team.to_dict() for team in teams])


@player_bp.route('/teams/<int:team_id>/members', methods=['POST'])
@login_required
def add_member(team_id):
    team = _get_team(team_id)
    data = json_body()
    user = None
    if data.get('user_id'):
        user = db.session.get(User, data['user_id'])
    elif data.get('username'):
        user = User.query.filter_by(username=data['username'].strip()).first()
    if user is None:
        raise NotFound('User not found')

    team.add_member(user, g.current_user)
    db.session.commit()
    return jsonify(team.to_dict()), 201


@player_bp.route('/tournaments/<int:tournament_id>/register', methods=['POST'])
@login_required
def register_for_tournament(tournament_id):
    """Register yourself, or a team you captain, for a tournament."""
    tournament = db.get_or_404(Tournament, tournament_id)
    team_id = json_body().get('team_id')
    team = _get_team(team_id) if team_id not in (None, '') else None

    registration = tournament.register(g.current_user, team=team)
    db.session.commit()
    return jsonify(registration.to_dict()), 201


@player_bp.route('/registrations')
@login_required
def my_registrations():
    captained = [team.id for team in Team.query.filter_by(captain_id=g.current_user.id)]
    registrations = (
        Registration.query.filter(
            or_(
                Registration.user_id == g.current_user.id,
                Registration.team_id.in_(captained),
            )
        )
        .order_by(Registration.created_at.desc())
        .all()
    )
    payload = []
    for registration in registrations:
        entry = registration.to_dict()
        entry['tournament'] = registration.tournament.name
        payload.append(entry)
    return jsonify(payload)


@player_bp.route('/registrations/<int:registration_id>/cancel', methods=['POST'])
@login_required
def cancel_registration(registration_id):
    registration = db.session.get(Registration, registration_id)
    if registration is None:
        raise NotFound('Registration not found')
    registration.cancel(g.current_user)
    db.session.commit()
    return jsonify(registration.to_dict())
