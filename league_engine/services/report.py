"""Season closure report: who went up, who went down, and how the playoffs ended."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..models import Assignment, Division, Match, MatchStatus, Team, TeamStatus
from ..storage import get_database, DatabaseInterface
from ..types import (
    DivisionReportDict,
    GroupStatsDict,
    PlayoffResultDict,
    SeasonReportDict,
    TeamRefDict,
)
from .consequences import determine_team_status
from .playoffs import PlayoffBracketBuilder

logger = logging.getLogger(__name__)


class SeasonReportService:
    """Builds read-only summaries of a season's outcome."""

    def __init__(
        self,
        db: Optional[DatabaseInterface] = None,
        bracket: Optional[PlayoffBracketBuilder] = None
    ) -> None:
        self._db = db
        self._bracket = bracket

    @property
    def db(self) -> DatabaseInterface:
        if self._db is None:
            self._db = get_database()
        return self._db

    @property
    def bracket(self) -> PlayoffBracketBuilder:
        if self._bracket is None:
            self._bracket = PlayoffBracketBuilder(db=self.db)
        return self._bracket

    def _playoff_row(self, match: Match, teams: Dict[int, Team]) -> PlayoffResultDict:
        def name(team_id: Optional[int]) -> Optional[str]:
            if team_id is None:
                return None
            team = teams.get(team_id)
            return team.name if team else str(team_id)

        return {
            'match_id': match.id,
            'round': match.playoff_round.value if match.playoff_round else '',
            'home': name(match.home_team_id),
            'away': name(match.away_team_id),
            'home_goals': match.home_goals,
            'away_goals': match.away_goals,
            'status': match.status.value,
            'winner': name(match.get_winner_id()),
        }

    @staticmethod
    def group_stats(code: str, matches: List[Match]) -> GroupStatsDict:
        """Home wins, away wins, draws and goals over finished regular matches."""
        stats: GroupStatsDict = {
            'group': code,
            'matches_played': 0,
            'home_wins': 0,
            'away_wins': 0,
            'draws': 0,
            'goals': 0,
        }
        for match in matches:
            if match.is_playoff or not match.is_finished():
                continue
            stats['matches_played'] += 1
            stats['goals'] += match.home_goals + match.away_goals
            if match.home_goals > match.away_goals:
                stats['home_wins'] += 1
            elif match.away_goals > match.home_goals:
                stats['away_wins'] += 1
            else:
                stats['draws'] += 1
        return stats

    def _division_report(self, division: Division, season_id: int, teams: Dict[int, Team]) -> DivisionReportDict:
        groups = self.db.get_groups(division.id)
        codes = {g.id: g.code for g in groups}
        phase = self.db.get_phase(division.id, season_id)

        report: DivisionReportDict = {
            'division_id': division.id,
            'name': division.name,
            'level': division.level,
            'phase': phase.value if phase else 'REGULAR_IN_PROGRESS',
            'promoted': [],
            'relegated': [],
            'tournament': [],
            'playoff_results': [],
            'pending_playoffs': [],
            'groups': [],
        }

        buckets = {
            TeamStatus.PROMOTES: report['promoted'],
            TeamStatus.RELEGATES: report['relegated'],
            TeamStatus.TOURNAMENT: report['tournament'],
        }
        for group in groups:
            positions = {s.team_id: s.position for s in self.db.get_standings(season_id, group.id)}
            assignments: List[Assignment] = self.db.get_assignments(season_id, group_id=group.id)
            for a in sorted(assignments, key=lambda a: positions.get(a.team_id, 0)):
                bucket = buckets.get(determine_team_status(a))
                if bucket is None:
                    continue
                team = teams.get(a.team_id)
                entry: TeamRefDict = {
                    'id': a.team_id,
                    'name': team.name if team else str(a.team_id),
                    'group': group.code,
                    'position': positions.get(a.team_id),
                }
                bucket.append(entry)

            matches = self.db.get_matches(season_id, group_id=group.id, is_playoff=False)
            report['groups'].append(self.group_stats(group.code, matches))

        for fixtures in self.bracket.get_bracket(division, season_id).values():
            for match in fixtures:
                row = self._playoff_row(match, teams)
                if match.status == MatchStatus.FINISHED:
                    report['playoff_results'].append(row)
                else:
                    report['pending_playoffs'].append(row)

        return report

    def generate_season_closure_report(self, season_id: int) -> SeasonReportDict:
        """
        Summarize every division of a season.

        Returns:
            Report with per-division outcomes, global totals and any
            divisions that have not finished their season yet
        """
        season = self.db.get_season(season_id)
        teams = {t.id: t for t in self.db.get_teams()}

        report: SeasonReportDict = {
            'season_id': season_id,
            'season_name': season.name if season else '',
            'generated_at': datetime.now(timezone.utc).isoformat(),
            'divisions': [],
            'totals': {},
            'issues': [],
        }
        if season is None:
            report['issues'].append(f"Season {season_id} does not exist")
            return report

        for division in self.db.get_divisions():
            division_report = self._division_report(division, season_id, teams)
            report['divisions'].append(division_report)
            if division_report['phase'] not in ('CONSEQUENCES_FINALIZED', 'NEXT_SEASON_PLANNED'):
                report['issues'].append(
                    f"{division.name} not finalized (phase {division_report['phase']})"
                )

        divisions = report['divisions']
        report['totals'] = {
            'promoted': sum(len(d['promoted']) for d in divisions),
            'relegated': sum(len(d['relegated']) for d in divisions),
            'tournament': sum(len(d['tournament']) for d in divisions),
            'playoff_matches': sum(len(d['playoff_results']) for d in divisions),
            'pending_playoffs': sum(len(d['pending_playoffs']) for d in divisions),
            'matches_played': sum(g['matches_played'] for d in divisions for g in d['groups']),
        }

        logger.info(
            f"Closure report for season {season_id}: {report['totals']}, "
            f"{len(report['issues'])} issues"
        )
        return report
