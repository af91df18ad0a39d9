import os
from datetime import timedelta

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

import pytest

from app import app
from models import (
    db,
    Game,
    Registration,
    RegistrationStatus,
    Team,
    Tournament,
    TournamentStatus,
    User,
    current_time,
    init_default_data,
)


@pytest.fixture
def flask_app():
    """Create test application with in-memory SQLite database"""
    app.config['TESTING'] = True
    app.config['SECRET_KEY'] = 'test-secret-key'
    app.config['ELO_K_FACTOR'] = 32
    app.config['STARTING_ELO'] = 1000.0
    app.config['AUTO_COMPLETE_TOURNAMENTS'] = False

    with app.app_context():
        db.create_all()
        # Initialize default data (creates default admin user and games)
        init_default_data()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    """Test client"""
    return flask_app.test_client()


@pytest.fixture
def make_user(flask_app):
    """Factory for committed users; every account has the player role."""
    created = {'count': 0}

    def _make_user(username=None, roles=('player',), password='Secret@123'):
        created['count'] += 1
        username = username or f"player{created['count']}"
        user = User(
            username=username,
            email=f'{username}@test.com',
            roles=sorted(set(roles) | {'player'}),
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def organizer(make_user):
    return make_user('organizer', roles=('organizer',))


@pytest.fixture
def other_organizer(make_user):
    return make_user('rival_organizer', roles=('organizer',))


@pytest.fixture
def admin(flask_app):
    return User.query.filter_by(username='admin').first()


@pytest.fixture
def game(flask_app):
    return Game.query.filter_by(name='Valorant').first()


@pytest.fixture
def make_tournament(flask_app, organizer, game):
    """Factory for committed tournaments owned by ``organizer``."""

    def _make_tournament(
        name='Rift Open',
        status=TournamentStatus.REGISTRATION,
        bracket_type='single_elimination',
        max_participants=16,
        is_team_based=False,
        **extra,
    ):
        start = current_time() + timedelta(days=7)
        tournament = Tournament(
            name=name,
            game_id=game.id,
            organizer_id=organizer.id,
            bracket_type=bracket_type,
            max_participants=max_participants,
            is_team_based=is_team_based,
            status=status,
            start_date=extra.pop('start_date', start),
            **extra,
        )
        db.session.add(tournament)
        db.session.commit()
        return tournament

    return _make_tournament


@pytest.fixture
def tournament(make_tournament):
    """Solo single-elimination tournament open for registration."""
    return make_tournament()


@pytest.fixture
def confirmed_players(make_user, organizer):
    """Register and confirm ``count`` new players; returns them in seed order."""

    def _confirm(tournament, count):
        players = []
        for idx in range(count):
            player = make_user(f't{tournament.id}_p{idx + 1}')
            registration = Registration(
                tournament_id=tournament.id,
                user_id=player.id,
                status=RegistrationStatus.CONFIRMED,
                seed=idx + 1,
            )
            db.session.add(registration)
            players.append(player)
        db.session.commit()
        return players

    return _confirm


@pytest.fixture
def live_bracket(confirmed_players, organizer):
    """Take a tournament live with ``count`` seeded players."""

    def _live(tournament, count):
        players = confirmed_players(tournament, count)
        tournament.transition_to(TournamentStatus.LIVE, organizer)
        db.session.commit()
        return players

    return _live


@pytest.fixture
def team_with_captain(make_user):
    def _team(name='Night Owls', members=0):
        captain = make_user(f"{name.lower().replace(' ', '_')}_cap")
        team = Team.create(name, captain, tag=name[:3].upper())
        db.session.flush()
        for idx in range(members):
            team.add_member(make_user(f"{name.lower().replace(' ', '_')}_{idx}"), captain)
        db.session.commit()
        return team, captain

    return _team


def _login(client, user):
    with client.session_transaction() as sess:
        sess["user_id"] = user.id
        sess["username"] = user.username
    return client


@pytest.fixture
def login_as(client):
    """Log the shared test client in as any user."""
    return lambda user: _login(client, user)


@pytest.fixture
def authenticated_organizer(client, organizer):
    """Client logged in as the tournament organizer"""
    return _login(client, organizer)


@pytest.fixture
def authenticated_player(client, make_user):
    """Client logged in as a fresh player; the user is on ``client.user``."""
    user = make_user('logged_in_player')
    _login(client, user)
    client.user = user
    return client
