"""Tests for the playoff bracket builder."""

import pytest
import threading
from datetime import datetime

from league_engine.models import (
    Division,
    Group,
    Match,
    MatchStatus,
    PlayoffRound,
    PromotionPolicy,
    Standing,
)
from league_engine.services import (
    DivisionConfigurationError,
    InconsistentStateError,
    InsufficientDataError,
    PlayoffBracketBuilder,
)

from conftest import division_config, ranked_outcome

CODES = "ABCDEFGH"


def make_groups(count: int) -> list:
    return [
        Group(id=i + 1, division_id=1, code=CODES[i], name=f"Division - Group {CODES[i]}")
        for i in range(count)
    ]


def make_tables(groups, size: int = 6) -> dict:
    """Team id encodes group and position: 100*group_id + position."""
    return {
        g.id: [Standing(team_id=100 * g.id + p, position=p) for p in range(1, size + 1)]
        for g in groups
    }


def pairs(matchups) -> list:
    return [(m.home_team_id, m.away_team_id) for m in matchups]


class TestOpeningRound:
    """Tests for pairing rules by group count."""

    def setup_method(self):
        self.builder = PlayoffBracketBuilder(start_offset_days=7, round_interval_days=7)

    def test_single_group_best_vs_worst(self):
        """Four seeds: 1st v 4th, 2nd v 3rd."""
        division = Division(level=2, name="Second", promote_playoff_slots=4)
        groups = make_groups(1)

        matchups = self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

        assert pairs(matchups) == [(101, 104), (102, 103)]
        assert all(m.round == PlayoffRound.SEMIFINAL for m in matchups)
        assert all(m.group_id == 1 for m in matchups)

    def test_single_group_skips_direct_promotion(self):
        """Seeding starts after the direct promotion places."""
        division = Division(level=2, name="Second", promote_slots=2, promote_playoff_slots=4)
        groups = make_groups(1)

        matchups = self.builder.build_opening_round(division, groups, make_tables(groups, 20), season_id=1)

        assert pairs(matchups) == [(103, 106), (104, 105)]

    def test_single_group_two_seeds_play_final(self):
        """Two playoff places go straight to a final."""
        division = Division(level=2, name="Second", promote_slots=1, promote_playoff_slots=2)
        groups = make_groups(1)

        matchups = self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

        assert pairs(matchups) == [(102, 103)]
        assert matchups[0].round == PlayoffRound.FINAL

    def test_two_groups_cross_pairing(self):
        """2nd A v 3rd B and 2nd B v 3rd A."""
        division = Division(level=3, name="Third", group_count=2, promote_slots=1, promote_playoff_slots=2)
        groups = make_groups(2)

        matchups = self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

        assert pairs(matchups) == [(102, 203), (202, 103)]
        assert [m.group_id for m in matchups] == [1, 2]
        assert all(m.round == PlayoffRound.SEMIFINAL for m in matchups)

    def test_four_groups_runners_up(self):
        """Runners-up: A v D, B v C."""
        division = Division(level=4, name="Fourth", group_count=4, promote_slots=1, promote_playoff_slots=1,
                            playoff_promotion=PromotionPolicy.FINALISTS)
        groups = make_groups(4)

        matchups = self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

        assert pairs(matchups) == [(102, 402), (202, 302)]
        assert all(m.round == PlayoffRound.SEMIFINAL for m in matchups)

    def test_eight_groups_quarterfinals(self):
        """A-H, B-G, C-F, D-E regardless of team identities."""
        division = Division(level=5, name="Fifth", group_count=8, promote_slots=1, promote_playoff_slots=1,
                            playoff_promotion=PromotionPolicy.OPENING_ROUND_WINNERS)
        groups = make_groups(8)

        matchups = self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

        by_group = {g.id: g.code for g in groups}
        codes = [(by_group[h // 100], by_group[a // 100]) for h, a in pairs(matchups)]
        assert codes == [("A", "H"), ("B", "G"), ("C", "F"), ("D", "E")]
        assert all(m.round == PlayoffRound.QUARTERFINAL for m in matchups)

    def test_groups_sorted_by_code(self):
        """Pairing uses group codes, not input order."""
        division = Division(level=4, name="Fourth", group_count=4, promote_slots=1, promote_playoff_slots=1,
                            playoff_promotion=PromotionPolicy.FINALISTS)
        groups = make_groups(4)

        matchups = self.builder.build_opening_round(
            division, list(reversed(groups)), make_tables(groups), season_id=1
        )

        assert pairs(matchups) == [(102, 402), (202, 302)]

    def test_unsupported_group_count(self):
        """Three groups have no pairing rule."""
        division = Division(level=3, name="Third", group_count=3, promote_playoff_slots=1)
        groups = make_groups(3)

        with pytest.raises(DivisionConfigurationError):
            self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

    def test_two_groups_require_two_places(self):
        division = Division(level=3, name="Third", group_count=2, promote_playoff_slots=1)
        groups = make_groups(2)

        with pytest.raises(DivisionConfigurationError):
            self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

    def test_single_group_odd_seed_count(self):
        """Three seeds cannot form a bracket."""
        division = Division(level=2, name="Second", promote_playoff_slots=3)
        groups = make_groups(1)

        with pytest.raises(DivisionConfigurationError):
            self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

    def test_policy_needs_reachable_round(self):
        """Promoting finalists needs a semifinal."""
        division = Division(level=2, name="Second", promote_playoff_slots=2,
                            playoff_promotion=PromotionPolicy.FINALISTS)
        groups = make_groups(1)

        with pytest.raises(DivisionConfigurationError):
            self.builder.build_opening_round(division, groups, make_tables(groups), season_id=1)

    def test_short_table_is_insufficient_data(self):
        """A group without enough ranked teams cannot seed the playoff."""
        division = Division(level=2, name="Second", promote_slots=2, promote_playoff_slots=4)
        groups = make_groups(1)

        with pytest.raises(InsufficientDataError):
            self.builder.build_opening_round(division, groups, make_tables(groups, 5), season_id=1)

    def test_scheduled_date_passed_through(self):
        division = Division(level=2, name="Second", promote_playoff_slots=4)
        groups = make_groups(1)
        when = datetime(2025, 6, 1, 18, 0)

        matchups = self.builder.build_opening_round(division, groups, make_tables(groups), 1, scheduled_date=when)

        assert all(m.scheduled_date == when for m in matchups)
        assert matchups[0].to_match().is_playoff is True


class TestHelpers:
    """Tests for winner resolution and round pairing."""

    def test_pair_four_winners(self):
        """Winners of fixtures 1-4 meet as 1 v 4 and 2 v 3."""
        assert PlayoffBracketBuilder.pair_winners([11, 22, 33, 44]) == [(11, 44), (22, 33)]

    def test_pair_two_winners(self):
        assert PlayoffBracketBuilder.pair_winners([11, 22]) == [(11, 22)]

    def test_pair_odd_winners_raises(self):
        with pytest.raises(InconsistentStateError):
            PlayoffBracketBuilder.pair_winners([11, 22, 33])

    def test_draw_has_no_winner(self):
        """A drawn playoff match is an inconsistent state."""
        match = Match(season_id=1, group_id=1, home_team_id=1, away_team_id=2, is_playoff=True,
                      status=MatchStatus.FINISHED, home_goals=1, away_goals=1)
        with pytest.raises(InconsistentStateError):
            PlayoffBracketBuilder.get_winner(match)

    def test_unfinished_has_no_winner(self):
        match = Match(season_id=1, group_id=1, home_team_id=1, away_team_id=2, is_playoff=True)
        with pytest.raises(InconsistentStateError):
            PlayoffBracketBuilder.get_winner(match)

    def test_winner(self):
        match = Match(season_id=1, group_id=1, home_team_id=1, away_team_id=2, is_playoff=True,
                      status=MatchStatus.FINISHED, home_goals=0, away_goals=2)
        assert PlayoffBracketBuilder.get_winner(match) == 2

    @pytest.mark.parametrize("policy,opening,expected", [
        (PromotionPolicy.FINAL_WINNER, PlayoffRound.SEMIFINAL, PlayoffRound.FINAL),
        (PromotionPolicy.FINALISTS, PlayoffRound.SEMIFINAL, PlayoffRound.SEMIFINAL),
        (PromotionPolicy.OPENING_ROUND_WINNERS, PlayoffRound.QUARTERFINAL, PlayoffRound.QUARTERFINAL),
    ])
    def test_promoting_round(self, policy, opening, expected):
        division = Division(level=2, name="Second", promote_playoff_slots=4, playoff_promotion=policy)
        assert PlayoffBracketBuilder.promoting_round(division, opening) == expected


class TestBracketLifecycle:
    """Tests for generating, advancing and resolving a stored bracket."""

    def _setup(self, league, standings_service, policy='final_winner', finish=True):
        league.setup([
            division_config(1),
            division_config(2, teams_per_group=6, promote_playoff_slots=4, playoff_promotion=policy),
        ])
        season = league.season()
        group = league.groups(2)[0]
        ids = [t.id for t in league.add_teams(season.id, group, 6)]
        matches = league.round_robin(
            season.id, group.id, ids, outcome=ranked_outcome(ids) if finish else None
        )
        standings_service.recalculate(season.id, group.id)
        builder = PlayoffBracketBuilder(
            db=league.db, standings=standings_service, start_offset_days=7, round_interval_days=7
        )
        return season, league.division(2), ids, matches, builder

    def test_no_playoffs_before_regular_season_ends(self, league, standings_service):
        """Nothing is created while regular matches are pending."""
        season, division, _, _, builder = self._setup(league, standings_service, finish=False)
        assert builder.generate(division, season.id) == []

    def test_division_without_playoff(self, league, standings_service):
        season, _, _, _, builder = self._setup(league, standings_service)
        assert builder.generate(league.division(1), season.id) == []

    def test_generate_creates_semifinals(self, league, standings_service):
        """1st v 4th and 2nd v 3rd, a week after the last regular match."""
        season, division, ids, matches, builder = self._setup(league, standings_service)

        created = builder.generate(division, season.id)

        assert [(m.home_team_id, m.away_team_id) for m in created] == [(ids[0], ids[3]), (ids[1], ids[2])]
        last_regular = max(m.scheduled_date for m in matches)
        assert all((m.scheduled_date - last_regular).days == 7 for m in created)
        assert builder.is_playoff_active(division, season.id) is True

    def test_generate_twice_creates_no_duplicates(self, league, standings_service):
        """A second generation is a no-op."""
        season, division, _, _, builder = self._setup(league, standings_service)

        builder.generate(division, season.id)
        assert builder.generate(division, season.id) == []
        assert len(builder.get_playoff_matches(division, season.id)) == 2

    def test_advance_waits_for_all_fixtures(self, league, standings_service):
        """The final is created only after both semifinals."""
        season, division, _, _, builder = self._setup(league, standings_service)
        semis = builder.generate(division, season.id)

        league.play(semis[0], 2, 1)
        assert builder.advance(division, season.id) == []

        league.play(semis[1], 0, 1)
        final = builder.advance(division, season.id)

        assert len(final) == 1
        assert final[0].playoff_round == PlayoffRound.FINAL
        assert (final[0].home_team_id, final[0].away_team_id) == (semis[0].home_team_id, semis[1].away_team_id)
        assert (final[0].scheduled_date - semis[0].scheduled_date).days == 7

    def test_advance_is_idempotent(self, league, standings_service):
        season, division, _, _, builder = self._setup(league, standings_service)
        semis = builder.generate(division, season.id)
        for semi in semis:
            league.play(semi, 1, 0)

        builder.advance(division, season.id)
        assert builder.advance(division, season.id) == []
        assert len(builder.get_bracket(division, season.id)[PlayoffRound.FINAL]) == 1

    def test_advance_rejects_drawn_match(self, league, standings_service):
        """A level playoff score stops the bracket."""
        season, division, _, _, builder = self._setup(league, standings_service)
        semis = builder.generate(division, season.id)
        league.play(semis[0], 1, 1)
        league.play(semis[1], 1, 0)

        with pytest.raises(InconsistentStateError):
            builder.advance(division, season.id)

    def test_final_winner_promoted(self, league, standings_service):
        """Only the final's winner is promoted under final_winner."""
        season, division, ids, _, builder = self._setup(league, standings_service)
        semis = builder.generate(division, season.id)
        league.play(semis[0], 3, 0)   # ids[0] wins
        league.play(semis[1], 0, 2)   # ids[2] wins
        builder.apply_results(division, season.id)

        flags = league.flags(season.id)
        assert flags[ids[3]].playoff is False
        assert flags[ids[1]].playoff is False
        assert flags[ids[0]].playoff is True
        assert flags[ids[0]].promoted is False

        final = builder.advance(division, season.id)[0]
        league.play(final, 0, 1)
        builder.apply_results(division, season.id)

        flags = league.flags(season.id)
        assert flags[ids[2]].promoted is True
        assert flags[ids[2]].playoff is False
        assert flags[ids[0]].promoted is False
        assert builder.get_playoff_winners(division, season.id) == [ids[2]]
        assert builder.are_playoffs_complete(division, season.id) is True
        assert builder.is_playoff_active(division, season.id) is False

    def test_finalists_promoted(self, league, standings_service):
        """Both semifinal winners go up under finalists."""
        season, division, ids, _, builder = self._setup(league, standings_service, policy='finalists')
        semis = builder.generate(division, season.id)
        league.play(semis[0], 1, 0)
        league.play(semis[1], 1, 0)

        builder.apply_results(division, season.id)

        flags = league.flags(season.id)
        assert flags[ids[0]].promoted is True
        assert flags[ids[1]].promoted is True
        assert sorted(builder.get_playoff_winners(division, season.id)) == sorted([ids[0], ids[1]])
        assert builder.are_playoffs_complete(division, season.id) is False

    def test_apply_results_is_repeatable(self, league, standings_service):
        """Re-applying finished results changes nothing."""
        season, division, _, _, builder = self._setup(league, standings_service)
        semis = builder.generate(division, season.id)
        for semi in semis:
            league.play(semi, 1, 0)

        assert builder.apply_results(division, season.id) == 2
        before = league.flags(season.id)
        assert builder.apply_results(division, season.id) == 2
        assert league.flags(season.id) == before

    def test_clear_remaining_playoff_flags(self, league, standings_service):
        season, division, ids, _, builder = self._setup(league, standings_service)
        assert league.flags(season.id)[ids[0]].playoff is True

        assert builder.clear_remaining_playoff_flags(division, season.id) == 4
        assert not any(a.playoff for a in league.flags(season.id).values())

    def test_concurrent_generate_creates_one_round(self, league, standings_service, monkeypatch):
        """Two triggers racing for the same division store a single opening round."""
        season, division, _, _, builder = self._setup(league, standings_service)
        rival = PlayoffBracketBuilder(db=league.db, standings=standings_service)
        barrier = threading.Barrier(2)
        opening_date = PlayoffBracketBuilder._opening_date

        def held_opening_date(self, division, season_id):
            # Hold the caller so the other trigger can catch up
            try:
                barrier.wait(timeout=1)
            except threading.BrokenBarrierError:
                pass
            return opening_date(self, division, season_id)

        monkeypatch.setattr(PlayoffBracketBuilder, '_opening_date', held_opening_date)

        created, errors = [], []

        def trigger(b):
            try:
                created.append(len(b.generate(division, season.id)))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=trigger, args=(b,)) for b in (builder, rival)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(created) == [0, 2]
        assert len(builder.get_bracket(division, season.id)[PlayoffRound.SEMIFINAL]) == 2

    def test_concurrent_advance_creates_one_final(self, league, standings_service, monkeypatch):
        """Racing advances after the semifinals store a single final."""
        season, division, _, _, builder = self._setup(league, standings_service)
        for semi in builder.generate(division, season.id):
            league.play(semi, 1, 0)
        rival = PlayoffBracketBuilder(db=league.db, standings=standings_service)
        barrier = threading.Barrier(2)
        pair_winners = PlayoffBracketBuilder.pair_winners

        def held_pair_winners(winners):
            try:
                barrier.wait(timeout=1)
            except threading.BrokenBarrierError:
                pass
            return pair_winners(winners)

        monkeypatch.setattr(PlayoffBracketBuilder, 'pair_winners', staticmethod(held_pair_winners))

        created, errors = [], []

        def trigger(b):
            try:
                created.append(len(b.advance(division, season.id)))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=trigger, args=(b,)) for b in (builder, rival)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(created) == [0, 1]
        assert len(builder.get_bracket(division, season.id)[PlayoffRound.FINAL]) == 1
