"""
Tiebreak cascade for teams level on points.

Teams are grouped by points. Inside a point-group the order is decided by:

1. matches among the tied teams only (head-to-head for two teams, a
   mini-league for three or more): points, goal difference, goals for
2. overall goal difference, overall goals for, followers
3. a last-resort fallback (random draw, or stable team-id order)

The same resolver ranks both the live table and the persisted one.
"""

import logging
import random
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..models import Match, Standing, TeamStats
from .. import config

logger = logging.getLogger(__name__)

TiebreakFallback = Callable[[List[TeamStats]], List[TeamStats]]
SortKey = Callable[[TeamStats], Tuple[int, ...]]


def random_draw(tied: List[TeamStats]) -> List[TeamStats]:
    """Order fully tied teams by lot."""
    drawn = list(tied)
    random.shuffle(drawn)
    return drawn


def stable_order(tied: List[TeamStats]) -> List[TeamStats]:
    """Order fully tied teams by ascending team id."""
    return sorted(tied, key=lambda s: s.team_id)


FALLBACKS: Dict[str, TiebreakFallback] = {
    'random': random_draw,
    'stable': stable_order,
}


def get_fallback(name: str) -> TiebreakFallback:
    """Look up a fallback by its configuration name."""
    try:
        return FALLBACKS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown tiebreak fallback: {name}. Valid options: {', '.join(FALLBACKS)}"
        ) from None


def head_to_head(team_ids: Iterable[int], matches: Sequence[Match]) -> Dict[int, TeamStats]:
    """
    Build a table from the finished regular matches played among ``team_ids``.

    Args:
        team_ids: Teams forming the sub-league
        matches: Candidate matches; any involving an outside team are ignored

    Returns:
        Mapping of team id to its stats inside the sub-league
    """
    table = {team_id: TeamStats(team_id=team_id) for team_id in team_ids}
    for match in matches:
        if match.is_playoff or not match.is_finished():
            continue
        if match.home_team_id not in table or match.away_team_id not in table:
            continue
        table[match.home_team_id].record(match.home_goals, match.away_goals)
        table[match.away_team_id].record(match.away_goals, match.home_goals)
    return table


def split_by(teams: Sequence[TeamStats], key: SortKey) -> List[List[TeamStats]]:
    """Bucket teams sharing the same key, highest key first."""
    buckets: List[List[TeamStats]] = []
    for team in sorted(teams, key=key, reverse=True):
        if buckets and key(buckets[-1][0]) == key(team):
            buckets[-1].append(team)
        else:
            buckets.append([team])
    return buckets


def _overall_key(stats: TeamStats) -> Tuple[int, ...]:
    return (stats.goal_difference, stats.goals_for, stats.followers)


class TiebreakResolver:
    """Orders a group's teams into a ranked table."""

    def __init__(self, fallback: Optional[TiebreakFallback] = None) -> None:
        """
        Args:
            fallback: Ordering for teams still level after every criterion;
                defaults to the TIEBREAK_FALLBACK setting
        """
        self.fallback = fallback or get_fallback(config.TIEBREAK_FALLBACK)

    def rank(self, stats: Sequence[TeamStats], matches: Sequence[Match]) -> List[Standing]:
        """
        Rank every team and assign positions 1..N.

        Args:
            stats: Aggregated stats for every team in the group
            matches: The group's matches, used for head-to-head criteria

        Returns:
            Standings ordered by position
        """
        ordered: List[TeamStats] = []
        for point_group in split_by(stats, key=lambda s: (s.points,)):
            ordered.extend(self.resolve(point_group, matches))
        return [Standing.from_stats(s, position) for position, s in enumerate(ordered, 1)]

    def resolve(self, tied: List[TeamStats], matches: Sequence[Match]) -> List[TeamStats]:
        """Order teams that are level on points."""
        if len(tied) == 1:
            return list(tied)

        table = head_to_head([s.team_id for s in tied], matches)
        if len(tied) == 2:
            logger.debug(f"Head-to-head between teams {tied[0].team_id} and {tied[1].team_id}")
        else:
            logger.debug(f"Mini-league among {len(tied)} teams on {tied[0].points} points")

        def sub_league_key(s: TeamStats) -> Tuple[int, ...]:
            sub = table[s.team_id]
            return (sub.points, sub.goal_difference, sub.goals_for)

        return self._cascade(tied, [sub_league_key, _overall_key])

    def _cascade(self, teams: List[TeamStats], keys: List[SortKey]) -> List[TeamStats]:
        if len(teams) == 1:
            return teams
        if not keys:
            logger.info(
                f"Teams {sorted(s.team_id for s in teams)} level on every criterion, "
                f"using {getattr(self.fallback, '__name__', 'fallback')}"
            )
            return self.fallback(teams)

        result: List[TeamStats] = []
        for bucket in split_by(teams, keys[0]):
            result.extend(self._cascade(bucket, keys[1:]))
        return result
