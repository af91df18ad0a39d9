"""Public read-only views: tournaments, brackets, standings and rankings."""

from dataclasses import dataclass

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.orm import joinedload

from errors import NotFound
from models import (
    db,
    Game,
    Match,
    MatchEloHistory,
    MatchStatus,
    PlayerRanking,
    Tournament,
    TournamentStatus,
    User,
)
import rating

public_bp = Blueprint("public", __name__, url_prefix="/public")

MAX_PAGE_SIZE = 100


@dataclass
class TournamentSummary:
    tournament: Tournament
    live_matches: list[Match]
    recent_results: list[Match]

    def to_dict(self) -> dict:
        names = self.tournament.participant_names()
        payload = self.tournament.to_dict()
        payload["live_matches"] = [match.to_dict(names) for match in self.live_matches]
        payload["recent_results"] = [match.to_dict(names) for match in self.recent_results]
        return payload


def _limit(default: int) -> int:
    limit = request.args.get("limit", default, type=int)
    return max(1, min(limit, MAX_PAGE_SIZE))


def _summarize(tournament: Tournament) -> TournamentSummary:
    matches = tournament.matches
    live_matches = [m for m in matches if m.status == MatchStatus.IN_PROGRESS]
    completed = [m for m in matches if m.status == MatchStatus.COMPLETED and not m.is_bye]
    completed.sort(key=lambda match: match.id, reverse=True)
    return TournamentSummary(
        tournament=tournament,
        live_matches=live_matches[:3],
        recent_results=completed[:5],
    )


@public_bp.route("/games")
def games_listing():
    return jsonify([game.to_dict() for game in Game.query.order_by(Game.name.asc())])


@public_bp.route("/tournaments")
def tournaments_listing():
    query = Tournament.query.options(joinedload(Tournament.game)).filter(
        Tournament.status != TournamentStatus.DRAFT
    )
    status = request.args.get("status")
    if status:
        query = query.filter(Tournament.status == TournamentStatus(status))
    game_id = request.args.get("game_id", type=int)
    if game_id:
        query = query.filter(Tournament.game_id == game_id)
    search = (request.args.get("q") or "").strip()
    if search:
        query = query.filter(Tournament.name.ilike(f"%{search}%"))

    tournaments = query.order_by(Tournament.start_date.asc()).limit(_limit(50)).all()
    return jsonify([tournament.to_dict() for tournament in tournaments])


def _public_tournament(tournament_id: int) -> Tournament:
    tournament = (
        Tournament.query.options(joinedload(Tournament.matches))
        .filter_by(id=tournament_id)
        .first()
    )
    if not tournament or tournament.state is TournamentStatus.DRAFT:
        raise NotFound("Tournament not found")
    return tournament


@public_bp.route("/tournaments/<int:tournament_id>")
def tournament_detail(tournament_id: int):
    return jsonify(_summarize(_public_tournament(tournament_id)).to_dict())


@public_bp.route("/tournaments/<int:tournament_id>/bracket")
def tournament_bracket(tournament_id: int):
    tournament = _public_tournament(tournament_id)
    return jsonify(
        {
            "tournament_id": tournament.id,
            "bracket_type": tournament.bracket_format.value,
            "champion_id": tournament.champion_id(),
            "sides": tournament.bracket(),
        }
    )


@public_bp.route("/tournaments/<int:tournament_id>/standings")
def tournament_standings(tournament_id: int):
    tournament = _public_tournament(tournament_id)
    return jsonify(tournament.standings())


@public_bp.route("/rankings")
def rankings():
    game_id = request.args.get("game_id", type=int)
    leaders = PlayerRanking.leaderboard(game_id=game_id, limit=_limit(50))
    return jsonify([ranking.to_dict(rank=idx) for idx, ranking in enumerate(leaders, start=1)])


@public_bp.route("/players/<int:user_id>/elo-history")
def elo_history(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("Player not found")
    game_id = request.args.get("game_id", type=int)
    history = MatchEloHistory.for_user(user.id, game_id=game_id, limit=_limit(20))

    rankings_query = PlayerRanking.query.filter_by(user_id=user.id)
    if game_id:
        rankings_query = rankings_query.filter_by(game_id=game_id)
    return jsonify(
        {
            "player": user.to_dict(),
            "rankings": [ranking.to_dict() for ranking in rankings_query],
            "history": [row.to_dict() for row in history],
        }
    )


@public_bp.route("/win-probability")
def win_probability():
    """Head-to-head odds from two players' current ratings in one game."""
    game_id = request.args.get("game_id", type=int)
    player_a = request.args.get("player_a", type=int)
    player_b = request.args.get("player_b", type=int)
    if not (game_id and player_a and player_b):
        raise ValueError("game_id, player_a and player_b are required")

    def current_elo(user_id):
        ranking = PlayerRanking.query.filter_by(user_id=user_id, game_id=game_id).first()
        if ranking is None:
            return float(current_app.config.get("STARTING_ELO", rating.STARTING_ELO))
        return ranking.elo_rating

    elo_a, elo_b = current_elo(player_a), current_elo(player_b)
    return jsonify(
        {
            "player_a": {"user_id": player_a, "elo_rating": round(elo_a, 2), "win_probability": round(rating.win_probability(elo_a, elo_b), 1)},
            "player_b": {"user_id": player_b, "elo_rating": round(elo_b, 2), "win_probability": round(rating.win_probability(elo_b, elo_a), 1)},
        }
    )
