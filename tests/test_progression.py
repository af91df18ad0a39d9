"""Match results moving participants through the bracket, plus rating side effects."""

import logging

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from brackets import BracketSide, RESET_STAGE
from errors import AlreadyGenerated, InsufficientParticipants, InvalidWinner, NotManager, StateConflict
from models import (
    db,
    Match,
    MatchEloHistory,
    MatchStatus,
    PlayerRanking,
    TournamentStatus,
    rating_applied,
    update_elo_after_match,
)


def _match(tournament, side, round_number, match_number=1):
    return Match.query.filter_by(
        tournament_id=tournament.id,
        bracket_side=side,
        round_number=round_number,
        match_number=match_number,
    ).one()


def _win(match, winner, organizer, score=(2, 0)):
    first, second = score if winner.id == match.participant1_id else score[::-1]
    match.record_result(winner.id, first, second, actor=organizer)
    db.session.commit()
    return match


def _elo(user, game):
    return PlayerRanking.query.filter_by(user_id=user.id, game_id=game.id).one().elo_rating


class TestSingleElimination:
    def test_winner_advances_to_the_right_slot(self, tournament, live_bracket, organizer):
        p1, p2, p3, p4 = live_bracket(tournament, 4)
        semi_one = _match(tournament, BracketSide.WINNERS, 1, 1)
        semi_two = _match(tournament, BracketSide.WINNERS, 1, 2)
        final = _match(tournament, BracketSide.WINNERS, 2)

        _win(semi_two, p3, organizer)
        assert final.participants == (None, p3.id)

        _win(semi_one, p1, organizer, score=(13, 11))
        assert final.participants == (p1.id, p3.id)
        assert semi_one.participant1_score == 13
        assert semi_one.loser_id == p4.id
        assert semi_one.state is MatchStatus.COMPLETED

        _win(final, p3, organizer)
        assert tournament.champion_id() == p3.id

    def test_five_players_byes_advance_automatically(self, tournament, live_bracket):
        p1, p2, p3, p4, p5 = live_bracket(tournament, 5)

        first_round = Match.query.filter_by(tournament_id=tournament.id, round_number=1).all()
        byes = [m for m in first_round if m.is_bye]
        assert len(byes) == 3
        assert all(m.state is MatchStatus.COMPLETED for m in byes)
        assert sorted(m.winner_id for m in byes) == [p1.id, p2.id, p3.id]

        contested = [m for m in first_round if not m.is_bye]
        assert [m.participants for m in contested] == [(p4.id, p5.id)]

        assert _match(tournament, BracketSide.WINNERS, 2, 1).participants == (p1.id, None)
        assert _match(tournament, BracketSide.WINNERS, 2, 2).participants == (p2.id, p3.id)
        assert MatchEloHistory.query.count() == 0

    def test_winner_must_be_a_participant(self, tournament, live_bracket, make_user, organizer):
        live_bracket(tournament, 4)
        semi = _match(tournament, BracketSide.WINNERS, 1, 1)
        with pytest.raises(InvalidWinner):
            semi.record_result(make_user().id, 1, 0, actor=organizer)

    def test_match_waiting_for_opponents_cannot_be_decided(self, tournament, live_bracket, organizer):
        p1 = live_bracket(tournament, 4)[0]
        final = _match(tournament, BracketSide.WINNERS, 2)
        with pytest.raises(InvalidWinner):
            final.record_result(p1.id, 1, 0, actor=organizer)

    def test_byes_cannot_be_reported(self, tournament, live_bracket, organizer):
        p1 = live_bracket(tournament, 3)[0]
        bye = Match.query.filter_by(tournament_id=tournament.id, is_bye=True).one()
        with pytest.raises(StateConflict):
            bye.record_result(p1.id, 1, 0, actor=organizer)

    def test_only_manager_reports(self, tournament, live_bracket, other_organizer):
        p1 = live_bracket(tournament, 2)[0]
        with pytest.raises(NotManager):
            _match(tournament, BracketSide.WINNERS, 1).record_result(p1.id, 1, 0, actor=other_organizer)

    def test_results_need_a_live_tournament(self, tournament, confirmed_players, organizer):
        p1 = confirmed_players(tournament, 2)[0]
        tournament.generate_bracket(organizer)
        with pytest.raises(StateConflict):
            _match(tournament, BracketSide.WINNERS, 1).record_result(p1.id, 1, 0, actor=organizer)

    def test_negative_scores_rejected(self, tournament, live_bracket, organizer):
        p1 = live_bracket(tournament, 2)[0]
        with pytest.raises(ValueError):
            _match(tournament, BracketSide.WINNERS, 1).record_result(p1.id, -1, 0, actor=organizer)

    @pytest.mark.parametrize('score', [1.5, '2.5', 'two', True])
    def test_fractional_or_non_numeric_scores_rejected(self, tournament, live_bracket, organizer, score):
        p1 = live_bracket(tournament, 2)[0]
        match = _match(tournament, BracketSide.WINNERS, 1)
        with pytest.raises(ValueError):
            match.record_result(p1.id, score, 0, actor=organizer)
        assert match.winner_id is None

    def test_whole_number_strings_are_accepted(self, tournament, live_bracket, organizer):
        p1 = live_bracket(tournament, 2)[0]
        match = _match(tournament, BracketSide.WINNERS, 1)
        match.record_result(p1.id, '3', 2.0, actor=organizer)
        assert (match.participant1_score, match.participant2_score) == (3, 2)


class TestMatchFlow:
    def test_start_then_report(self, tournament, live_bracket, organizer):
        p1 = live_bracket(tournament, 2)[0]
        match = _match(tournament, BracketSide.WINNERS, 1)
        match.start(organizer)
        assert match.state is MatchStatus.IN_PROGRESS
        with pytest.raises(StateConflict):
            match.start(organizer)

        _win(match, p1, organizer)
        assert match.state is MatchStatus.COMPLETED

    def test_start_needs_both_participants(self, tournament, live_bracket, organizer):
        live_bracket(tournament, 4)
        with pytest.raises(StateConflict):
            _match(tournament, BracketSide.WINNERS, 2).start(organizer)

    def test_dispute_keeps_notes_and_blocks_completion(self, tournament, live_bracket, organizer):
        p1 = live_bracket(tournament, 2)[0]
        match = _match(tournament, BracketSide.WINNERS, 1)
        match.mark_disputed(organizer, 'Score screenshot missing')
        db.session.commit()

        assert match.state is MatchStatus.DISPUTED
        assert match.notes == 'Score screenshot missing'
        with pytest.raises(StateConflict):
            tournament.transition_to('completed', organizer)

        _win(match, p1, organizer)
        assert match.state is MatchStatus.COMPLETED

    def test_same_winner_only_corrects_the_score(self, tournament, live_bracket, organizer, game):
        p1 = live_bracket(tournament, 2)[0]
        match = _win(_match(tournament, BracketSide.WINNERS, 1), p1, organizer, score=(2, 1))
        elo_after_first = _elo(p1, game)

        _win(match, p1, organizer, score=(3, 1))
        assert (match.participant1_score, match.participant2_score) == (3, 1)
        assert _elo(p1, game) == elo_after_first
        assert MatchEloHistory.query.filter_by(match_id=match.id).count() == 2

    def test_changing_the_winner_needs_reopen(self, tournament, live_bracket, organizer):
        p1, p2 = live_bracket(tournament, 2)
        match = _win(_match(tournament, BracketSide.WINNERS, 1), p1, organizer)
        with pytest.raises(StateConflict, match='Reopen'):
            match.record_result(p2.id, 0, 2, actor=organizer)

    def test_stale_write_is_detected(self, tournament, live_bracket):
        live_bracket(tournament, 2)
        match = _match(tournament, BracketSide.WINNERS, 1)
        db.session.execute(
            text('UPDATE tournament_matches SET version_id = version_id + 1 WHERE id = :id'),
            {'id': match.id},
        )
        match.notes = 'late edit'
        with pytest.raises(StaleDataError):
            db.session.commit()
        db.session.rollback()


class TestReopen:
    def test_reopen_clears_downstream_and_reverses_ratings(self, tournament, live_bracket, organizer, game):
        p1, p2, p3, p4 = live_bracket(tournament, 4)
        semi = _win(_match(tournament, BracketSide.WINNERS, 1, 1), p1, organizer)
        final = _match(tournament, BracketSide.WINNERS, 2)
        assert final.participant1_id == p1.id

        semi.reopen(organizer)
        db.session.commit()

        assert semi.state is MatchStatus.PENDING
        assert semi.winner_id is None
        assert final.participant1_id is None
        assert _elo(p1, game) == pytest.approx(1000.0)
        assert _elo(p4, game) == pytest.approx(1000.0)
        assert not rating_applied(semi.id)
        reasons = [row.reason for row in MatchEloHistory.query.filter_by(match_id=semi.id)]
        assert sorted(reasons) == ['result', 'result', 'reversal', 'reversal']

        _win(semi, p4, organizer)
        assert final.participant1_id == p4.id
        assert _elo(p4, game) > 1000.0

    def test_reopen_blocked_once_next_match_started(self, tournament, live_bracket, organizer):
        p1, p2, p3, p4 = live_bracket(tournament, 4)
        semi = _win(_match(tournament, BracketSide.WINNERS, 1, 1), p1, organizer)
        _win(_match(tournament, BracketSide.WINNERS, 1, 2), p2, organizer)
        _match(tournament, BracketSide.WINNERS, 2).start(organizer)

        with pytest.raises(StateConflict):
            semi.reopen(organizer)

    def test_undecided_match_cannot_be_reopened(self, tournament, live_bracket, organizer):
        live_bracket(tournament, 2)
        with pytest.raises(StateConflict):
            _match(tournament, BracketSide.WINNERS, 1).reopen(organizer)

    def test_reopen_restores_win_streak(self, tournament, live_bracket, organizer, game):
        p1, p2, p3, p4 = live_bracket(tournament, 4)
        _win(_match(tournament, BracketSide.WINNERS, 1, 1), p1, organizer)
        _win(_match(tournament, BracketSide.WINNERS, 1, 2), p2, organizer)
        final = _win(_match(tournament, BracketSide.WINNERS, 2), p1, organizer)

        ranking = PlayerRanking.query.filter_by(user_id=p1.id, game_id=game.id).one()
        assert (ranking.win_streak, ranking.best_win_streak, ranking.wins) == (2, 2, 2)

        final.reopen(organizer)
        db.session.commit()
        assert (ranking.win_streak, ranking.wins, ranking.matches_played) == (1, 1, 1)
        assert ranking.elo_rating == pytest.approx(1016.0)


class TestRatings:
    def test_result_updates_both_rankings(self, tournament, live_bracket, organizer, game):
        p1, p2 = live_bracket(tournament, 2)
        _win(_match(tournament, BracketSide.WINNERS, 1), p1, organizer)

        winner = PlayerRanking.query.filter_by(user_id=p1.id, game_id=game.id).one()
        loser = PlayerRanking.query.filter_by(user_id=p2.id, game_id=game.id).one()

        assert (winner.elo_rating, winner.peak_elo) == (1016.0, 1016.0)
        assert (winner.wins, winner.losses, winner.win_streak, winner.best_win_streak) == (1, 0, 1, 1)
        assert (loser.elo_rating, loser.peak_elo) == (984.0, 1000.0)
        assert (loser.wins, loser.losses, loser.win_streak, loser.matches_played) == (0, 1, 0, 1)
        assert winner.last_match_at is not None
        assert loser.last_match_at is not None

    def test_loss_resets_streak_but_keeps_peak(self, make_tournament, live_bracket, organizer, game):
        week_one, week_two = make_tournament(name='Week One'), make_tournament(name='Week Two')
        p1, p2 = live_bracket(week_one, 2)
        _win(_match(week_one, BracketSide.WINNERS, 1), p1, organizer)

        for player in (p1, p2):
            week_two.register(player).update_status('confirmed', organizer)
        week_two.transition_to(TournamentStatus.LIVE, organizer)
        db.session.commit()
        _win(_match(week_two, BracketSide.WINNERS, 1), p2, organizer)

        ranking = PlayerRanking.query.filter_by(user_id=p1.id, game_id=game.id).one()
        assert (ranking.win_streak, ranking.best_win_streak, ranking.losses) == (0, 1, 1)
        assert ranking.peak_elo == pytest.approx(1016.0)
        assert ranking.elo_rating < ranking.peak_elo

    def test_rating_log_reports_expected_score(self, tournament, live_bracket, organizer, caplog):
        p1, _ = live_bracket(tournament, 2)
        with caplog.at_level(logging.INFO):
            _win(_match(tournament, BracketSide.WINNERS, 1), p1, organizer)
        assert '+16.0 (expected 50%)' in caplog.text

    def test_favourite_win_moves_both_ratings(self, tournament, live_bracket, organizer, game):
        p1, p2 = live_bracket(tournament, 2)
        PlayerRanking.for_player(p1.id, game.id).elo_rating = 1200.0
        PlayerRanking.for_player(p2.id, game.id).elo_rating = 1000.0
        db.session.commit()

        _win(_match(tournament, BracketSide.WINNERS, 1), p1, organizer)

        assert _elo(p1, game) == pytest.approx(1207.69, abs=0.01)
        assert _elo(p2, game) == pytest.approx(992.31, abs=0.01)
        rows = MatchEloHistory.query.order_by(MatchEloHistory.id).all()
        assert [row.user_id for row in rows] == [p1.id, p2.id]
        assert rows[0].elo_change == pytest.approx(-rows[1].elo_change)

    def test_rating_is_applied_once_per_result(self, tournament, live_bracket, organizer, game):
        p1, p2 = live_bracket(tournament, 2)
        match = _win(_match(tournament, BracketSide.WINNERS, 1), p1, organizer)

        assert update_elo_after_match(match, p1.id, p2.id, game.id) is None
        assert _elo(p1, game) == pytest.approx(1016.0)
        ranking = PlayerRanking.query.filter_by(user_id=p1.id, game_id=game.id).one()
        assert ranking.matches_played == 1
        assert ranking.tier == 'Iron'

    def test_k_factor_comes_from_config(self, flask_app, tournament, live_bracket, organizer, game):
        flask_app.config['ELO_K_FACTOR'] = 40
        p1, p2 = live_bracket(tournament, 2)
        _win(_match(tournament, BracketSide.WINNERS, 1), p1, organizer)
        assert _elo(p1, game) == pytest.approx(1020.0)

    def test_team_matches_are_not_rated(self, make_tournament, team_with_captain, organizer):
        cup = make_tournament(is_team_based=True)
        teams = []
        for name in ('Night Owls', 'Storm Riders'):
            team, captain = team_with_captain(name)
            cup.register(captain, team=team).update_status('confirmed', organizer)
            teams.append(team)
        cup.transition_to('live', organizer)
        db.session.commit()

        match = _match(cup, BracketSide.WINNERS, 1)
        match.record_result(teams[0].id, 1, 0, actor=organizer)
        db.session.commit()

        assert cup.champion_id() == teams[0].id
        assert PlayerRanking.query.count() == 0
        assert MatchEloHistory.query.count() == 0


class TestDoubleElimination:
    @pytest.fixture
    def cup(self, make_tournament, live_bracket):
        cup = make_tournament(bracket_type='double_elimination')
        cup.players = live_bracket(cup, 4)
        return cup

    def _reach_grand_final(self, cup, organizer):
        p1, p2, p3, p4 = cup.players
        _win(_match(cup, BracketSide.WINNERS, 1, 1), p1, organizer)
        _win(_match(cup, BracketSide.WINNERS, 1, 2), p2, organizer)
        _win(_match(cup, BracketSide.WINNERS, 2), p1, organizer)
        _win(_match(cup, BracketSide.LOSERS, 1), p3, organizer)
        _win(_match(cup, BracketSide.LOSERS, 2), p2, organizer)
        return _match(cup, BracketSide.GRAND_FINAL, 1)

    def test_losers_drop_into_the_losers_bracket(self, cup, organizer):
        p1, p2, p3, p4 = cup.players
        _win(_match(cup, BracketSide.WINNERS, 1, 1), p1, organizer)
        _win(_match(cup, BracketSide.WINNERS, 1, 2), p2, organizer)
        assert _match(cup, BracketSide.LOSERS, 1).participants == (p4.id, p3.id)

        _win(_match(cup, BracketSide.WINNERS, 2), p1, organizer)
        assert _match(cup, BracketSide.LOSERS, 2).participant2_id == p2.id
        assert _match(cup, BracketSide.GRAND_FINAL, 1).participant1_id == p1.id

    def test_unbeaten_finalist_wins_outright(self, cup, organizer):
        grand_final = self._reach_grand_final(cup, organizer)
        p1, p2 = cup.players[:2]
        assert grand_final.participants == (p1.id, p2.id)

        _win(grand_final, p1, organizer)
        assert Match.query.filter_by(tournament_id=cup.id, bracket_side=BracketSide.GRAND_FINAL).count() == 1
        assert cup.champion_id() == p1.id
        assert cup.unfinished_match_count() == 0

    def test_losers_champion_forces_a_reset(self, cup, organizer):
        grand_final = self._reach_grand_final(cup, organizer)
        p1, p2 = cup.players[:2]

        _win(grand_final, p2, organizer)
        reset = _match(cup, BracketSide.GRAND_FINAL, 2)
        assert reset.stage == RESET_STAGE
        assert reset.participants == (p1.id, p2.id)
        assert cup.champion_id() is None

        _win(reset, p2, organizer)
        assert cup.champion_id() == p2.id

    def test_reopening_the_grand_final_removes_the_reset(self, cup, organizer):
        grand_final = self._reach_grand_final(cup, organizer)
        _win(grand_final, cup.players[1], organizer)

        grand_final.reopen(organizer)
        db.session.commit()
        assert Match.query.filter_by(tournament_id=cup.id, bracket_side=BracketSide.GRAND_FINAL).count() == 1
        assert grand_final.next_match_id is None
        assert grand_final.state is MatchStatus.PENDING

        _win(grand_final, cup.players[0], organizer)
        assert cup.champion_id() == cup.players[0].id


class TestRoundRobin:
    @pytest.fixture
    def league(self, make_tournament, live_bracket):
        league = make_tournament(bracket_type='round_robin')
        league.players = live_bracket(league, 4)
        return league

    def _play_table(self, league, organizer):
        """Lower seed always wins 2-0, so seed order is the final table."""
        by_id = {player.id: player for player in league.players}
        for match in Match.query.filter_by(tournament_id=league.id).order_by(Match.round_number, Match.match_number):
            _win(match, by_id[min(match.participants)], organizer)

    def test_everyone_plays_everyone(self, league):
        matches = Match.query.filter_by(tournament_id=league.id).all()
        assert len(matches) == 6
        assert {m.bracket_side for m in matches} == {BracketSide.ROUND_ROBIN}
        assert all(m.is_ready for m in matches)

    def test_standings_order(self, league, organizer, game):
        self._play_table(league, organizer)
        table = league.standings()

        assert [row['participant_id'] for row in table] == [p.id for p in league.players]
        assert [row['wins'] for row in table] == [3, 2, 1, 0]
        assert table[0]['score_diff'] == 6
        assert table[0]['rank'] == 1
        assert league.champion_id() == league.players[0].id
        assert _elo(league.players[0], game) > _elo(league.players[3], game)

    def test_playoff_seeded_from_the_table(self, league, organizer):
        with pytest.raises(StateConflict):
            league.generate_playoff(2, organizer)

        self._play_table(league, organizer)
        playoff = league.generate_playoff(2, organizer)
        db.session.commit()

        assert len(playoff) == 1
        final = playoff[0]
        assert final.bracket_side == BracketSide.PLAYOFF
        assert final.round_number == 4
        assert final.stage == 'Playoff Final'
        assert final.participants == (league.players[0].id, league.players[1].id)
        assert league.champion_id() is None

        with pytest.raises(AlreadyGenerated):
            league.generate_playoff(2, organizer)

        _win(final, league.players[1], organizer)
        assert league.champion_id() == league.players[1].id

    def test_playoff_size_limits(self, league, organizer):
        self._play_table(league, organizer)
        with pytest.raises(InsufficientParticipants):
            league.generate_playoff(1, organizer)
        with pytest.raises(ValueError):
            league.generate_playoff(5, organizer)

    def test_round_robin_result_locked_after_playoff(self, league, organizer):
        self._play_table(league, organizer)
        league.generate_playoff(2, organizer)
        db.session.commit()

        first = _match(league, BracketSide.ROUND_ROBIN, 1)
        with pytest.raises(StateConflict):
            first.reopen(organizer)

    def test_playoff_only_for_round_robin(self, tournament, live_bracket, organizer):
        live_bracket(tournament, 4)
        with pytest.raises(StateConflict):
            tournament.generate_playoff(2, organizer)

    def test_league_stays_live_until_closed(self, league, organizer):
        self._play_table(league, organizer)
        assert league.status is TournamentStatus.LIVE
        league.transition_to('completed', organizer)
        assert league.status is TournamentStatus.COMPLETED
