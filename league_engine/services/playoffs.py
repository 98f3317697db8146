"""
Playoff bracket builder.

Selects playoff qualifiers from final group tables, creates the opening
round with the division's cross-group pairing, advances the bracket one
round at a time as results arrive, and applies the division's promotion
policy to playoff winners.

Pairing rules by group count:
- 1 group: seeds promote+1 .. promote+playoff, best vs worst (4 seeds -> 1v4, 2v3)
- 2 groups: 2nd A vs 3rd B, 2nd B vs 3rd A
- 4 groups: runners-up, A vs D, B vs C
- 8 groups: runners-up, A-H, B-G, C-F, D-E (quarterfinals)
"""

import logging
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional, Sequence

from ..models import (
    Division,
    Group,
    Match,
    MatchStatus,
    PlayoffMatchup,
    PlayoffRound,
    PromotionPolicy,
    Standing,
)
from ..storage import get_database, DatabaseInterface, IntegrityError
from .exceptions import (
    DivisionConfigurationError,
    InconsistentStateError,
    InsufficientDataError,
)
from .standings import StandingsService
from .. import config

logger = logging.getLogger(__name__)


class PlayoffBracketBuilder:
    """Builds and advances elimination brackets per division and season."""

    SUPPORTED_GROUP_COUNTS = (1, 2, 4, 8)

    def __init__(
        self,
        db: Optional[DatabaseInterface] = None,
        standings: Optional[StandingsService] = None,
        start_offset_days: Optional[int] = None,
        round_interval_days: Optional[int] = None
    ) -> None:
        self._db = db
        self._standings = standings
        self.start_offset_days = (
            config.PLAYOFF_START_OFFSET_DAYS if start_offset_days is None else start_offset_days
        )
        self.round_interval_days = (
            config.PLAYOFF_ROUND_INTERVAL_DAYS if round_interval_days is None else round_interval_days
        )

    @property
    def db(self) -> DatabaseInterface:
        if self._db is None:
            self._db = get_database()
        return self._db

    @property
    def standings(self) -> StandingsService:
        if self._standings is None:
            self._standings = StandingsService(db=self.db)
        return self._standings

    # =========================================================================
    # QUALIFICATION & PAIRING (no storage access)
    # =========================================================================

    @staticmethod
    def qualifiers(division: Division, group: Group, table: Sequence[Standing], count: int) -> List[Standing]:
        """
        Teams ranked promote+1 .. promote+count in one group.

        Raises:
            InsufficientDataError: If the group table is too short
        """
        start = division.promote_slots
        ranked = sorted(table, key=lambda s: s.position)
        if len(ranked) < start + count:
            raise InsufficientDataError(
                f"{division.name} group {group.code}: {len(ranked)} teams ranked, "
                f"playoff needs positions {start + 1}-{start + count}"
            )
        return ranked[start:start + count]

    @staticmethod
    def promoting_round(division: Division, opening_round: PlayoffRound) -> PlayoffRound:
        """Round whose winners are promoted under the division's policy."""
        if division.playoff_promotion == PromotionPolicy.OPENING_ROUND_WINNERS:
            return opening_round
        if division.playoff_promotion == PromotionPolicy.FINALISTS:
            return PlayoffRound.SEMIFINAL
        return PlayoffRound.FINAL

    def build_opening_round(
        self,
        division: Division,
        groups: Sequence[Group],
        tables: Dict[int, List[Standing]],
        season_id: int,
        scheduled_date: Optional[datetime] = None
    ) -> List[PlayoffMatchup]:
        """
        Pair the qualified teams of a division into the opening round.

        Args:
            division: Division running the playoff
            groups: The division's groups
            tables: Final standings per group id
            season_id: Season of the playoff
            scheduled_date: Date given to every fixture

        Returns:
            Unsaved matchups, home team first

        Raises:
            DivisionConfigurationError: Unsupported group count or slot layout
            InsufficientDataError: Not enough ranked teams
        """
        groups = sorted(groups, key=lambda g: g.code)
        count = len(groups)
        if count not in self.SUPPORTED_GROUP_COUNTS:
            raise DivisionConfigurationError(
                f"{division.name}: no playoff pairing defined for {count} groups"
            )

        if count == 1:
            seeds = self.qualifiers(division, groups[0], tables.get(groups[0].id, []),
                                    division.promote_playoff_slots)
            opening = PlayoffRound.for_team_count(len(seeds))
            if opening is None:
                raise DivisionConfigurationError(
                    f"{division.name}: {len(seeds)} playoff places cannot form a bracket"
                )
            pairs = [(seeds[i], seeds[-1 - i]) for i in range(len(seeds) // 2)]
            group_of = {s.team_id: groups[0].id for s in seeds}

        elif count == 2:
            if division.promote_playoff_slots != 2:
                raise DivisionConfigurationError(
                    f"{division.name}: two-group playoff takes 2 teams per group, "
                    f"got {division.promote_playoff_slots}"
                )
            group_a, group_b = groups
            qa = self.qualifiers(division, group_a, tables.get(group_a.id, []), 2)
            qb = self.qualifiers(division, group_b, tables.get(group_b.id, []), 2)
            opening = PlayoffRound.SEMIFINAL
            pairs = [(qa[0], qb[1]), (qb[0], qa[1])]
            group_of = {s.team_id: group_a.id for s in qa}
            group_of.update({s.team_id: group_b.id for s in qb})

        else:
            if division.promote_playoff_slots != 1:
                raise DivisionConfigurationError(
                    f"{division.name}: {count}-group playoff takes the runner-up of each group, "
                    f"got {division.promote_playoff_slots} places per group"
                )
            runners_up = [
                self.qualifiers(division, g, tables.get(g.id, []), 1)[0] for g in groups
            ]
            opening = PlayoffRound.for_team_count(count)
            # A-D, B-C for four groups; A-H, B-G, C-F, D-E for eight
            pairs = [(runners_up[i], runners_up[-1 - i]) for i in range(count // 2)]
            group_of = {s.team_id: g.id for s, g in zip(runners_up, groups)}

        promoting = self.promoting_round(division, opening)
        if promoting.order < opening.order:
            raise DivisionConfigurationError(
                f"{division.name}: {division.playoff_promotion.value} promotes "
                f"{promoting.value} winners but the bracket opens at {opening.value}"
            )

        return [
            PlayoffMatchup(
                season_id=season_id,
                group_id=group_of[home.team_id],
                round=opening,
                home_team_id=home.team_id,
                away_team_id=away.team_id,
                scheduled_date=scheduled_date,
            )
            for home, away in pairs
        ]

    @staticmethod
    def pair_winners(winners: List[int]) -> List[tuple]:
        """Pair winners of a finished round, in creation order of its fixtures."""
        if len(winners) == 4:
            return [(winners[0], winners[3]), (winners[1], winners[2])]
        if len(winners) == 2:
            return [(winners[0], winners[1])]
        raise InconsistentStateError(f"Cannot pair {len(winners)} playoff winners")

    @staticmethod
    def get_winner(match: Match) -> int:
        """
        Winner of a finished playoff match.

        Raises:
            InconsistentStateError: If the match is unfinished or drawn
        """
        if not match.is_finished():
            raise InconsistentStateError(f"Playoff match {match.id} is not finished")
        winner = match.get_winner_id()
        if winner is None:
            raise InconsistentStateError(
                f"Playoff match {match.id} finished level "
                f"{match.home_goals}-{match.away_goals}; playoff draws are not allowed"
            )
        return winner

    # =========================================================================
    # BRACKET STATE
    # =========================================================================

    def get_playoff_matches(self, division: Division, season_id: int) -> List[Match]:
        group_ids = [g.id for g in self.db.get_groups(division.id)]
        return self.db.get_matches(season_id, group_ids=group_ids, is_playoff=True)

    def get_bracket(self, division: Division, season_id: int) -> Dict[PlayoffRound, List[Match]]:
        """Playoff matches grouped by round, earliest round first."""
        bracket: Dict[PlayoffRound, List[Match]] = {}
        for match in self.get_playoff_matches(division, season_id):
            bracket.setdefault(match.playoff_round, []).append(match)
        return dict(sorted(bracket.items(), key=lambda item: item[0].order))

    def is_playoff_active(self, division: Division, season_id: int) -> bool:
        """True while scheduled or live playoff fixtures exist."""
        return any(
            m.status in (MatchStatus.SCHEDULED, MatchStatus.LIVE)
            for m in self.get_playoff_matches(division, season_id)
        )

    def are_playoffs_complete(self, division: Division, season_id: int) -> bool:
        """True once the final exists and every final fixture is finished."""
        finals = self.get_bracket(division, season_id).get(PlayoffRound.FINAL, [])
        return bool(finals) and all(m.status == MatchStatus.FINISHED for m in finals)

    def get_playoff_winners(self, division: Division, season_id: int) -> List[int]:
        """Teams promoted through the playoff so far under the division's policy."""
        bracket = self.get_bracket(division, season_id)
        if not bracket:
            return []
        promoting = self.promoting_round(division, next(iter(bracket)))
        return [
            self.get_winner(m)
            for m in bracket.get(promoting, [])
            if m.status == MatchStatus.FINISHED
        ]

    # =========================================================================
    # GENERATION
    # =========================================================================

    def _opening_date(self, division: Division, season_id: int) -> datetime:
        """Regular season end plus the configured offset."""
        group_ids = [g.id for g in self.db.get_groups(division.id)]
        dates = [
            m.scheduled_date
            for m in self.db.get_matches(season_id, group_ids=group_ids, is_playoff=False)
            if m.scheduled_date is not None
        ]
        if dates:
            end = max(dates)
        else:
            season = self.db.get_season(season_id)
            if season is not None and season.end_date is not None:
                end = datetime.combine(season.end_date, time(hour=18))
            else:
                end = datetime.now().replace(microsecond=0)
        return end + timedelta(days=self.start_offset_days)

    def generate(self, division: Division, season_id: int) -> List[Match]:
        """
        Create the opening round for a division.

        The existence check and the insert run under the storage write lock,
        so concurrent triggers (threads or processes) create one round.

        Returns:
            The created fixtures; empty when the division has no playoff,
            the regular season is still running, or fixtures already exist

        Raises:
            DivisionConfigurationError: Unsupported pairing or policy
            InsufficientDataError: Too few ranked teams to fill the bracket
        """
        if not division.has_playoffs:
            return []

        try:
            with self.db.transaction(exclusive=True):
                if self.get_playoff_matches(division, season_id):
                    logger.info(f"Playoffs for {division.name} season {season_id} already exist")
                    return []

                if not self.standings.is_division_regular_season_complete(season_id, division.id):
                    logger.info(f"{division.name} regular season still in progress, no playoffs yet")
                    return []

                groups = self.db.get_groups(division.id)
                tables = {}
                for group in groups:
                    table = self.db.get_standings(season_id, group.id)
                    tables[group.id] = table or self.standings.get_live_standings(season_id, group.id)

                matchups = self.build_opening_round(
                    division, groups, tables, season_id,
                    scheduled_date=self._opening_date(division, season_id)
                )
                created = self.db.save_matches([m.to_match() for m in matchups])
        except IntegrityError as e:
            logger.info(f"Playoffs for {division.name} season {season_id} created concurrently: {e}")
            return []

        logger.info(
            f"Created {len(created)} {matchups[0].round.value} fixtures "
            f"for {division.name} season {season_id}"
        )
        return created

    def advance(self, division: Division, season_id: int) -> List[Match]:
        """
        Create the next round once every fixture of the latest round is finished.

        Runs under the storage write lock like ``generate``.

        Returns:
            The created fixtures; empty when nothing is due
        """
        try:
            with self.db.transaction(exclusive=True):
                bracket = self.get_bracket(division, season_id)
                if not bracket:
                    return []

                current = list(bracket)[-1]
                fixtures = bracket[current]
                if any(m.status != MatchStatus.FINISHED for m in fixtures):
                    return []

                upcoming = current.next_round()
                if upcoming is None or upcoming in bracket:
                    return []

                winners = [self.get_winner(m) for m in fixtures]
                pairs = self.pair_winners(winners)

                group_of = {}
                for match in fixtures:
                    group_of[match.home_team_id] = match.group_id
                    group_of[match.away_team_id] = match.group_id

                last_date = max((m.scheduled_date for m in fixtures if m.scheduled_date), default=None)
                next_date = last_date + timedelta(days=self.round_interval_days) if last_date else None

                matchups = [
                    PlayoffMatchup(
                        season_id=season_id,
                        group_id=group_of[home],
                        round=upcoming,
                        home_team_id=home,
                        away_team_id=away,
                        scheduled_date=next_date,
                    )
                    for home, away in pairs
                ]
                created = self.db.save_matches([m.to_match() for m in matchups])
        except IntegrityError as e:
            logger.info(f"{division.name}: next round for season {season_id} created concurrently: {e}")
            return []

        logger.info(
            f"{division.name}: {current.value} complete, created {len(created)} "
            f"{upcoming.value} fixtures"
        )
        return created

    # =========================================================================
    # PROMOTION
    # =========================================================================

    def apply_match_outcome(self, division: Division, match: Match, promoting: PlayoffRound) -> None:
        """
        Update flags after one finished playoff match.

        The loser leaves the playoff. A winner of the promoting round is
        promoted and leaves the playoff; other winners keep playing.
        """
        winner = self.get_winner(match)
        loser = match.get_loser_id()

        self.db.update_assignment_flags(match.season_id, loser, {'playoff': False})
        if match.playoff_round == promoting:
            self.db.update_assignment_flags(match.season_id, winner, {
                'promoted': True,
                'playoff': False,
            })
            logger.info(f"{division.name}: team {winner} promoted via {match.playoff_round.value}")

    def apply_results(self, division: Division, season_id: int) -> int:
        """
        Re-apply every finished playoff result. Safe to run repeatedly.

        Returns:
            Number of finished playoff matches processed
        """
        bracket = self.get_bracket(division, season_id)
        if not bracket:
            return 0
        promoting = self.promoting_round(division, next(iter(bracket)))

        processed = 0
        with self.db.transaction():
            for fixtures in bracket.values():
                for match in fixtures:
                    if match.status != MatchStatus.FINISHED:
                        continue
                    self.apply_match_outcome(division, match, promoting)
                    processed += 1
        return processed

    def clear_remaining_playoff_flags(self, division: Division, season_id: int) -> int:
        """Drop playoff flags still set once the division's playoff is over."""
        group_ids = [g.id for g in self.db.get_groups(division.id)]
        cleared = 0
        with self.db.transaction():
            for assignment in self.db.get_assignments(season_id, group_ids=group_ids):
                if assignment.playoff:
                    self.db.update_assignment_flags(season_id, assignment.team_id, {'playoff': False})
                    cleared += 1
        return cleared
