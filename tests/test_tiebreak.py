"""Tests for the tiebreak cascade and standings ranking."""

import pytest
from collections import Counter

from league_engine.models import Match, MatchStatus, PlayoffRound, Team, TeamStats
from league_engine.services import TiebreakResolver, calculate_standings, random_draw, stable_order
from league_engine.services.tiebreak import get_fallback, head_to_head, split_by


def result(home: int, away: int, home_goals: int, away_goals: int, **extra) -> Match:
    return Match(
        season_id=1,
        group_id=1,
        home_team_id=home,
        away_team_id=away,
        status=MatchStatus.FINISHED,
        home_goals=home_goals,
        away_goals=away_goals,
        **extra
    )


def teams(*ids: int, followers=None) -> list:
    followers = followers or {}
    return [Team(id=i, name=f"Team {i}", followers=followers.get(i, 0)) for i in ids]


def order(standings) -> list:
    return [s.team_id for s in standings]


@pytest.fixture
def resolver():
    return TiebreakResolver(fallback=stable_order)


class TestFallbacks:
    """Tests for the last-resort ordering."""

    def test_get_fallback_by_name(self):
        """Names are case-insensitive."""
        assert get_fallback('stable') is stable_order
        assert get_fallback('RANDOM') is random_draw

    def test_unknown_fallback_raises(self):
        """Unknown names are rejected."""
        with pytest.raises(ValueError):
            get_fallback('coin_toss')

    def test_random_draw_is_permutation(self):
        """A draw reorders but never drops teams."""
        tied = [TeamStats(team_id=i) for i in range(6)]
        drawn = random_draw(tied)
        assert sorted(s.team_id for s in drawn) == list(range(6))

    def test_stable_order_by_team_id(self):
        """Stable fallback orders by ascending id."""
        tied = [TeamStats(team_id=i) for i in (7, 3, 5)]
        assert [s.team_id for s in stable_order(tied)] == [3, 5, 7]


class TestHeadToHead:
    """Tests for the sub-league table."""

    def test_only_matches_among_tied_teams(self):
        """Matches against outsiders, playoffs and unfinished fixtures are ignored."""
        matches = [
            result(1, 2, 2, 0),
            result(1, 3, 5, 0),
            result(2, 1, 1, 1, is_playoff=True, playoff_round=PlayoffRound.FINAL),
            Match(season_id=1, group_id=1, home_team_id=2, away_team_id=1),
        ]
        table = head_to_head([1, 2], matches)

        assert table[1].points == 3
        assert table[1].goals_for == 2
        assert table[2].played == 1

    def test_split_by_groups_equal_keys(self):
        """Equal keys share a bucket, highest first."""
        stats = [TeamStats(team_id=1, points=3), TeamStats(team_id=2, points=6), TeamStats(team_id=3, points=3)]
        buckets = split_by(stats, key=lambda s: (s.points,))
        assert [[s.team_id for s in b] for b in buckets] == [[2], [1, 3]]


class TestRanking:
    """Tests for the full ranking cascade."""

    def test_points_first(self, resolver):
        """More points always rank higher."""
        matches = [result(1, 2, 0, 1), result(2, 3, 0, 0), result(3, 1, 0, 3)]
        assert order(calculate_standings(teams(1, 2, 3), matches, resolver)) == [2, 1, 3]

    def test_two_team_tie_uses_head_to_head(self, resolver):
        """The winner of the direct meeting ranks higher despite a worse goal difference."""
        matches = [
            result(1, 2, 1, 0),  # A beat B
            result(2, 3, 6, 0),  # B has the better overall difference
            result(3, 4, 0, 0),
        ]
        standings = calculate_standings(teams(1, 2, 3, 4), matches, resolver)

        assert order(standings)[:2] == [1, 2]
        by_id = {s.team_id: s for s in standings}
        assert by_id[2].goal_difference > by_id[1].goal_difference

    def test_drawn_head_to_head_falls_back_to_goal_difference(self, resolver):
        """A level direct meeting defers to the overall table."""
        matches = [
            result(1, 2, 1, 1),
            result(1, 3, 4, 0),
            result(2, 3, 1, 0),
        ]
        assert order(calculate_standings(teams(1, 2, 3), matches, resolver)) == [1, 2, 3]

    def test_three_team_tie_uses_mini_league(self, resolver):
        """Mini-league order wins over the overall goal difference."""
        a, b, c, x, y = 1, 2, 3, 4, 5
        matches = [
            result(a, b, 1, 0),
            result(a, c, 1, 0),
            result(b, c, 1, 0),
            result(b, x, 1, 0),
            result(c, x, 10, 0),
            result(c, y, 10, 0),
        ]
        standings = calculate_standings(teams(a, b, c, x, y), matches, resolver)
        by_id = {s.team_id: s for s in standings}

        assert by_id[a].points == by_id[b].points == by_id[c].points == 6
        assert by_id[c].goal_difference > by_id[a].goal_difference > by_id[b].goal_difference
        assert order(standings) == [a, b, c, y, x]

    def test_followers_break_remaining_ties(self, resolver):
        """Identical records are split by followers."""
        standings = calculate_standings(teams(1, 2, followers={2: 500}), [], resolver)
        assert order(standings) == [2, 1]

    def test_stable_fallback_when_everything_is_level(self, resolver):
        """Fully tied teams fall back to team id order."""
        standings = calculate_standings(teams(9, 4, 6), [], resolver)
        assert order(standings) == [4, 6, 9]

    def test_fallback_receives_only_fully_tied_teams(self):
        """The fallback is not consulted for teams separated earlier."""
        calls = []

        def recording(tied):
            calls.append(sorted(s.team_id for s in tied))
            return stable_order(tied)

        matches = [result(1, 2, 1, 0)]
        calculate_standings(teams(1, 2, 3, 4), matches, TiebreakResolver(fallback=recording))

        assert calls == [[3, 4]]

    def test_playoff_matches_do_not_count(self, resolver):
        """Only regular-season results feed the table."""
        matches = [
            result(1, 2, 1, 0),
            result(2, 1, 5, 0, is_playoff=True, playoff_round=PlayoffRound.FINAL),
        ]
        standings = calculate_standings(teams(1, 2), matches, resolver)
        assert standings[0].team_id == 1
        assert standings[0].points == 3
        assert standings[1].points == 0


class TestInvariants:
    """Properties every table must satisfy."""

    def _season(self):
        ids = list(range(1, 9))
        matches = []
        for i, home in enumerate(ids):
            for away in ids[i + 1:]:
                matches.append(result(home, away, (home * 3 + away) % 4, (away * 2 + home) % 3))
                matches.append(result(away, home, (home + away) % 3, (home * away) % 2))
        return teams(*ids), matches

    def test_points_total(self, resolver):
        """Total points equal 3 per decisive match plus 2 per draw."""
        group, matches = self._season()
        standings = calculate_standings(group, matches, resolver)

        outcomes = Counter(
            'draw' if m.home_goals == m.away_goals else 'decisive' for m in matches
        )
        assert sum(s.points for s in standings) == 3 * outcomes['decisive'] + 2 * outcomes['draw']

    def test_positions_are_contiguous(self, resolver):
        """Positions run 1..N with no gaps or repeats."""
        group, matches = self._season()
        standings = calculate_standings(group, matches, resolver)
        assert [s.position for s in standings] == list(range(1, len(group) + 1))
        assert sorted(order(standings)) == [t.id for t in group]

    def test_recalculation_is_idempotent(self, resolver):
        """Ranking the same results twice gives identical rows."""
        group, matches = self._season()
        first = calculate_standings(group, matches, resolver)
        second = calculate_standings(group, matches, resolver)
        assert [s.model_dump() for s in first] == [s.model_dump() for s in second]

    def test_teams_without_matches_are_listed(self, resolver):
        """Every assigned team appears even before kickoff."""
        standings = calculate_standings(teams(1, 2, 3), [], resolver)
        assert len(standings) == 3
        assert all(s.played == 0 and s.points == 0 for s in standings)

    def test_outside_team_matches_skipped(self, resolver):
        """Results involving a team outside the group are ignored."""
        standings = calculate_standings(teams(1, 2), [result(1, 99, 3, 0)], resolver)
        assert all(s.played == 0 for s in standings)
