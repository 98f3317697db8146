"""
SQLite Database Storage for the league engine.

Provides storage for divisions, groups, seasons, teams, assignments,
matches, standings and division phases with:
- Indexed queries for per-group/season lookups
- Atomic (nestable) transactions so a group recompute lands as one unit
- Concurrent read access via WAL mode

This is the SQLite implementation of the DatabaseInterface.
"""

import sqlite3
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterator, List, Dict, Any
import threading

from .base import DatabaseInterface
from .exceptions import ConnectionError, IntegrityError, QueryError, SchemaError
from ..models import (
    Assignment,
    Division,
    DivisionPhase,
    Group,
    Match,
    MatchStatus,
    PlayoffRound,
    Season,
    Standing,
    Team,
)


def _iso(value: Optional[Any]) -> Optional[str]:
    """Serialize a date/datetime column value."""
    if value is None:
        return None
    return value.isoformat()


class SQLiteDatabase(DatabaseInterface):
    """
    SQLite database for league data storage.
    Thread-safe with connection per thread.

    Implements the DatabaseInterface abstract base class.
    """

    SCHEMA_VERSION = 2

    def __init__(self, db_path: str = "data/league.db"):
        """
        Create SQLite database instance.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        """Initialize the database connection and schema."""
        if self._initialized:
            return

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()
        self._initialized = True

    def close(self) -> None:
        """Close database connections and clean up resources."""
        if hasattr(self._local, 'conn') and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None

    def health_check(self) -> bool:
        """Check if the database connection is healthy."""
        try:
            conn = self._get_connection()
            conn.execute("SELECT 1")
            return True
        except (sqlite3.Error, ConnectionError):
            return False

    # =========================================================================
    # CONNECTION MANAGEMENT
    # =========================================================================

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            try:
                conn = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,
                    timeout=30.0
                )
            except sqlite3.Error as e:
                raise ConnectionError(f"Cannot open {self.db_path}: {e}") from e
            conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrent access
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._local.conn = conn
            self._local.depth = 0
        return self._local.conn

    @contextmanager
    def transaction(self, exclusive: bool = False) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions. Nested blocks join the outer one.

        With ``exclusive`` the write lock is taken before the first read, so
        other connections (threads or processes) wait until this one commits.
        """
        conn = self._get_connection()
        self._local.depth += 1
        try:
            # A pending write already holds the lock
            if exclusive and not conn.in_transaction:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            if self._local.depth == 1:
                conn.commit()
        except sqlite3.IntegrityError as e:
            if self._local.depth == 1:
                conn.rollback()
            raise IntegrityError(str(e)) from e
        except Exception:
            if self._local.depth == 1:
                conn.rollback()
            raise
        finally:
            self._local.depth -= 1

    def _init_schema(self) -> None:
        """Initialize database schema."""
        try:
            with self.transaction() as conn:
                conn.executescript('''
                    -- Metadata table
                    CREATE TABLE IF NOT EXISTS metadata (
                        key TEXT PRIMARY KEY,
                        value TEXT,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );

                    CREATE TABLE IF NOT EXISTS divisions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        level INTEGER NOT NULL UNIQUE,
                        name TEXT NOT NULL,
                        group_count INTEGER NOT NULL DEFAULT 1,
                        teams_per_group INTEGER NOT NULL DEFAULT 20,
                        promote_slots INTEGER NOT NULL DEFAULT 0,
                        promote_playoff_slots INTEGER NOT NULL DEFAULT 0,
                        relegate_slots INTEGER NOT NULL DEFAULT 0,
                        tournament_slots INTEGER NOT NULL DEFAULT 0,
                        playoff_promotion TEXT NOT NULL DEFAULT 'final_winner'
                    );

                    -- Groups (round-robin pools inside a division)
                    CREATE TABLE IF NOT EXISTS groups (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        division_id INTEGER NOT NULL,
                        code TEXT NOT NULL,
                        name TEXT NOT NULL,
                        max_teams INTEGER NOT NULL DEFAULT 20,
                        FOREIGN KEY (division_id) REFERENCES divisions(id),
                        UNIQUE (division_id, code)
                    );

                    CREATE TABLE IF NOT EXISTS seasons (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        year INTEGER,
                        start_date TEXT,
                        end_date TEXT,
                        is_active INTEGER NOT NULL DEFAULT 0,
                        is_completed INTEGER NOT NULL DEFAULT 0
                    );

                    CREATE TABLE IF NOT EXISTS teams (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        followers INTEGER NOT NULL DEFAULT 0
                    );

                    -- Team plays in group during season
                    CREATE TABLE IF NOT EXISTS assignments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        team_id INTEGER NOT NULL,
                        group_id INTEGER NOT NULL,
                        season_id INTEGER NOT NULL,
                        reason TEXT NOT NULL DEFAULT 'initial',
                        followers_at_assignment INTEGER NOT NULL DEFAULT 0,
                        promoted INTEGER NOT NULL DEFAULT 0,
                        relegated INTEGER NOT NULL DEFAULT 0,
                        playoff INTEGER NOT NULL DEFAULT 0,
                        qualified_for_tournament INTEGER NOT NULL DEFAULT 0,
                        next_group_id INTEGER,
                        FOREIGN KEY (team_id) REFERENCES teams(id),
                        FOREIGN KEY (group_id) REFERENCES groups(id),
                        FOREIGN KEY (season_id) REFERENCES seasons(id),
                        UNIQUE (team_id, season_id)
                    );

                    CREATE TABLE IF NOT EXISTS matches (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        season_id INTEGER NOT NULL,
                        group_id INTEGER NOT NULL,
                        home_team_id INTEGER NOT NULL,
                        away_team_id INTEGER NOT NULL,
                        matchday INTEGER,
                        scheduled_date TEXT,
                        status TEXT NOT NULL DEFAULT 'scheduled',
                        home_goals INTEGER,
                        away_goals INTEGER,
                        is_playoff INTEGER NOT NULL DEFAULT 0,
                        playoff_round TEXT,
                        FOREIGN KEY (season_id) REFERENCES seasons(id),
                        FOREIGN KEY (group_id) REFERENCES groups(id)
                    );

                    -- Standings (derived, replaced wholesale on recompute)
                    CREATE TABLE IF NOT EXISTS standings (
                        season_id INTEGER NOT NULL,
                        group_id INTEGER NOT NULL,
                        team_id INTEGER NOT NULL,
                        position INTEGER NOT NULL,
                        data JSON NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (season_id, group_id, team_id)
                    );

                    CREATE TABLE IF NOT EXISTS division_phases (
                        division_id INTEGER NOT NULL,
                        season_id INTEGER NOT NULL,
                        phase TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (division_id, season_id)
                    );

                    -- Indexes for fast queries
                    CREATE INDEX IF NOT EXISTS idx_groups_division ON groups(division_id);
                    CREATE INDEX IF NOT EXISTS idx_assignments_season_group ON assignments(season_id, group_id);
                    CREATE INDEX IF NOT EXISTS idx_matches_season_group ON matches(season_id, group_id);
                    CREATE INDEX IF NOT EXISTS idx_matches_status ON matches(status);
                    CREATE INDEX IF NOT EXISTS idx_matches_playoff ON matches(season_id, is_playoff);
                    CREATE UNIQUE INDEX IF NOT EXISTS idx_matches_playoff_fixture
                        ON matches(season_id, home_team_id, away_team_id, playoff_round)
                        WHERE is_playoff = 1;
                ''')

                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                    ('schema_version', str(self.SCHEMA_VERSION))
                )
        except sqlite3.Error as e:
            raise SchemaError(f"Failed to initialize schema: {e}") from e

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    @staticmethod
    def _division(row: sqlite3.Row) -> Division:
        return Division(**dict(row))

    @staticmethod
    def _group(row: sqlite3.Row) -> Group:
        return Group(**dict(row))

    @staticmethod
    def _season(row: sqlite3.Row) -> Season:
        data = dict(row)
        data['is_active'] = bool(data['is_active'])
        data['is_completed'] = bool(data['is_completed'])
        return Season(**data)

    @staticmethod
    def _assignment(row: sqlite3.Row) -> Assignment:
        data = dict(row)
        for flag in ('promoted', 'relegated', 'playoff', 'qualified_for_tournament'):
            data[flag] = bool(data[flag])
        return Assignment(**data)

    @staticmethod
    def _match(row: sqlite3.Row) -> Match:
        data = dict(row)
        data['is_playoff'] = bool(data['is_playoff'])
        if not data['playoff_round']:
            data['playoff_round'] = None
        return Match(**data)

    # =========================================================================
    # LEAGUE STRUCTURE
    # =========================================================================

    def save_division(self, division: Division) -> Division:
        """Insert or update a division, matched by level."""
        with self.transaction() as conn:
            conn.execute('''
                INSERT INTO divisions
                (level, name, group_count, teams_per_group, promote_slots,
                 promote_playoff_slots, relegate_slots, tournament_slots, playoff_promotion)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(level) DO UPDATE SET
                    name = excluded.name,
                    group_count = excluded.group_count,
                    teams_per_group = excluded.teams_per_group,
                    promote_slots = excluded.promote_slots,
                    promote_playoff_slots = excluded.promote_playoff_slots,
                    relegate_slots = excluded.relegate_slots,
                    tournament_slots = excluded.tournament_slots,
                    playoff_promotion = excluded.playoff_promotion
            ''', (
                division.level,
                division.name,
                division.group_count,
                division.teams_per_group,
                division.promote_slots,
                division.promote_playoff_slots,
                division.relegate_slots,
                division.tournament_slots,
                division.playoff_promotion.value,
            ))
            row = conn.execute(
                'SELECT * FROM divisions WHERE level = ?', (division.level,)
            ).fetchone()
        return self._division(row)

    def get_divisions(self) -> List[Division]:
        """Get all divisions, top tier first."""
        conn = self._get_connection()
        rows = conn.execute('SELECT * FROM divisions ORDER BY level ASC').fetchall()
        return [self._division(row) for row in rows]

    def get_division(self, division_id: int) -> Optional[Division]:
        conn = self._get_connection()
        row = conn.execute(
            'SELECT * FROM divisions WHERE id = ?', (division_id,)
        ).fetchone()
        return self._division(row) if row else None

    def save_group(self, group: Group) -> Group:
        """Insert or update a group, matched by (division, code)."""
        with self.transaction() as conn:
            conn.execute('''
                INSERT INTO groups (division_id, code, name, max_teams)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(division_id, code) DO UPDATE SET
                    name = excluded.name,
                    max_teams = excluded.max_teams
            ''', (group.division_id, group.code, group.name, group.max_teams))
            row = conn.execute(
                'SELECT * FROM groups WHERE division_id = ? AND code = ?',
                (group.division_id, group.code)
            ).fetchone()
        return self._group(row)

    def get_groups(self, division_id: Optional[int] = None) -> List[Group]:
        """Get groups ordered by division level and code."""
        query = '''
            SELECT g.* FROM groups g
            JOIN divisions d ON d.id = g.division_id
            WHERE 1=1
        '''
        params: List[Any] = []
        if division_id is not None:
            query += " AND g.division_id = ?"
            params.append(division_id)
        query += " ORDER BY d.level ASC, g.code ASC"

        conn = self._get_connection()
        rows = conn.execute(query, params).fetchall()
        return [self._group(row) for row in rows]

    def get_group(self, group_id: int) -> Optional[Group]:
        conn = self._get_connection()
        row = conn.execute('SELECT * FROM groups WHERE id = ?', (group_id,)).fetchone()
        return self._group(row) if row else None

    # =========================================================================
    # SEASONS
    # =========================================================================

    def save_season(self, season: Season) -> Season:
        """Insert a new season or update an existing one."""
        values = (
            season.name,
            season.year,
            _iso(season.start_date),
            _iso(season.end_date),
            int(season.is_active),
            int(season.is_completed),
        )
        with self.transaction() as conn:
            if season.id is None:
                cursor = conn.execute('''
                    INSERT INTO seasons (name, year, start_date, end_date, is_active, is_completed)
                    VALUES (?, ?, ?, ?, ?, ?)
                ''', values)
                season_id = cursor.lastrowid
            else:
                conn.execute('''
                    UPDATE seasons
                    SET name = ?, year = ?, start_date = ?, end_date = ?,
                        is_active = ?, is_completed = ?
                    WHERE id = ?
                ''', values + (season.id,))
                season_id = season.id
            if season.is_active:
                conn.execute(
                    'UPDATE seasons SET is_active = 0 WHERE id != ?', (season_id,)
                )
        return self.get_season(season_id)

    def get_season(self, season_id: int) -> Optional[Season]:
        conn = self._get_connection()
        row = conn.execute('SELECT * FROM seasons WHERE id = ?', (season_id,)).fetchone()
        return self._season(row) if row else None

    def get_seasons(self) -> List[Season]:
        """Get all seasons, newest first."""
        conn = self._get_connection()
        rows = conn.execute('SELECT * FROM seasons ORDER BY id DESC').fetchall()
        return [self._season(row) for row in rows]

    def get_active_season(self) -> Optional[Season]:
        conn = self._get_connection()
        row = conn.execute(
            'SELECT * FROM seasons WHERE is_active = 1 ORDER BY id DESC LIMIT 1'
        ).fetchone()
        return self._season(row) if row else None

    def set_active_season(self, season_id: int) -> None:
        """Activate one season and deactivate every other."""
        with self.transaction() as conn:
            cursor = conn.execute(
                'UPDATE seasons SET is_active = 1 WHERE id = ?', (season_id,)
            )
            if cursor.rowcount == 0:
                raise QueryError(f"Season {season_id} not found")
            conn.execute('UPDATE seasons SET is_active = 0 WHERE id != ?', (season_id,))

    def complete_season(self, season_id: int) -> None:
        with self.transaction() as conn:
            conn.execute(
                'UPDATE seasons SET is_completed = 1, is_active = 0 WHERE id = ?',
                (season_id,)
            )

    # =========================================================================
    # TEAMS
    # =========================================================================

    def save_teams(self, teams: List[Team]) -> List[Team]:
        """Insert new teams (id is None) or update existing ones."""
        saved = []
        with self.transaction() as conn:
            for team in teams:
                if team.id is None:
                    cursor = conn.execute(
                        'INSERT INTO teams (name, followers) VALUES (?, ?)',
                        (team.name, team.followers)
                    )
                    saved.append(team.model_copy(update={'id': cursor.lastrowid}))
                else:
                    conn.execute('''
                        INSERT INTO teams (id, name, followers) VALUES (?, ?, ?)
                        ON CONFLICT(id) DO UPDATE SET
                            name = excluded.name,
                            followers = excluded.followers
                    ''', (team.id, team.name, team.followers))
                    saved.append(team)
        return saved

    def get_team(self, team_id: int) -> Optional[Team]:
        conn = self._get_connection()
        row = conn.execute('SELECT * FROM teams WHERE id = ?', (team_id,)).fetchone()
        return Team(**dict(row)) if row else None

    def get_teams(self, team_ids: Optional[List[int]] = None) -> List[Team]:
        """Get teams ordered by id."""
        conn = self._get_connection()
        if team_ids is None:
            rows = conn.execute('SELECT * FROM teams ORDER BY id').fetchall()
        elif not team_ids:
            return []
        else:
            placeholders = ','.join('?' * len(team_ids))
            rows = conn.execute(
                f'SELECT * FROM teams WHERE id IN ({placeholders}) ORDER BY id',
                list(team_ids)
            ).fetchall()
        return [Team(**dict(row)) for row in rows]

    # =========================================================================
    # ASSIGNMENTS
    # =========================================================================

    def save_assignments(self, assignments: List[Assignment]) -> List[Assignment]:
        """Create assignments, skipping (team, season) pairs that already exist."""
        created = []
        with self.transaction() as conn:
            for a in assignments:
                cursor = conn.execute('''
                    INSERT OR IGNORE INTO assignments
                    (team_id, group_id, season_id, reason, followers_at_assignment,
                     promoted, relegated, playoff, qualified_for_tournament, next_group_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    a.team_id,
                    a.group_id,
                    a.season_id,
                    a.reason.value,
                    a.followers_at_assignment,
                    int(a.promoted),
                    int(a.relegated),
                    int(a.playoff),
                    int(a.qualified_for_tournament),
                    a.next_group_id,
                ))
                if cursor.rowcount:
                    created.append(a.model_copy(update={'id': cursor.lastrowid}))
        return created

    def get_assignments(
        self,
        season_id: int,
        group_id: Optional[int] = None,
        group_ids: Optional[List[int]] = None
    ) -> List[Assignment]:
        """Get a season's assignments ordered by group and team."""
        query = "SELECT * FROM assignments WHERE season_id = ?"
        params: List[Any] = [season_id]

        if group_id is not None:
            query += " AND group_id = ?"
            params.append(group_id)

        if group_ids is not None:
            if not group_ids:
                return []
            query += f" AND group_id IN ({','.join('?' * len(group_ids))})"
            params.extend(group_ids)

        query += " ORDER BY group_id, team_id"

        conn = self._get_connection()
        rows = conn.execute(query, params).fetchall()
        return [self._assignment(row) for row in rows]

    def get_assignment(self, team_id: int, season_id: int) -> Optional[Assignment]:
        conn = self._get_connection()
        row = conn.execute(
            'SELECT * FROM assignments WHERE team_id = ? AND season_id = ?',
            (team_id, season_id)
        ).fetchone()
        return self._assignment(row) if row else None

    def update_assignment_flags(
        self,
        season_id: int,
        team_id: int,
        flags: Dict[str, Any]
    ) -> None:
        """Update outcome flags on one assignment."""
        if not flags:
            return
        unknown = set(flags) - set(self.ASSIGNMENT_FLAGS)
        if unknown:
            raise QueryError(f"Not assignment flags: {sorted(unknown)}")

        columns = sorted(flags)
        values = [
            flags[c] if c == 'next_group_id' else int(bool(flags[c]))
            for c in columns
        ]
        assignments = ', '.join(f"{c} = ?" for c in columns)
        with self.transaction() as conn:
            conn.execute(
                f'UPDATE assignments SET {assignments} WHERE season_id = ? AND team_id = ?',
                values + [season_id, team_id]
            )

    def clear_assignment_flags(self, season_id: int) -> int:
        with self.transaction() as conn:
            cursor = conn.execute('''
                UPDATE assignments
                SET promoted = 0, relegated = 0, playoff = 0,
                    qualified_for_tournament = 0, next_group_id = NULL
                WHERE season_id = ?
            ''', (season_id,))
        return cursor.rowcount

    # =========================================================================
    # MATCHES
    # =========================================================================

    def save_matches(self, matches: List[Match]) -> List[Match]:
        """Insert matches. Returns them with ids populated."""
        saved = []
        with self.transaction() as conn:
            for m in matches:
                cursor = conn.execute('''
                    INSERT INTO matches
                    (season_id, group_id, home_team_id, away_team_id, matchday,
                     scheduled_date, status, home_goals, away_goals, is_playoff, playoff_round)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    m.season_id,
                    m.group_id,
                    m.home_team_id,
                    m.away_team_id,
                    m.matchday,
                    _iso(m.scheduled_date),
                    m.status.value,
                    m.home_goals,
                    m.away_goals,
                    int(m.is_playoff),
                    m.playoff_round.value if m.playoff_round else None,
                ))
                saved.append(m.model_copy(update={'id': cursor.lastrowid}))
        return saved

    def get_match(self, match_id: int) -> Optional[Match]:
        conn = self._get_connection()
        row = conn.execute('SELECT * FROM matches WHERE id = ?', (match_id,)).fetchone()
        return self._match(row) if row else None

    def get_matches(
        self,
        season_id: int,
        group_id: Optional[int] = None,
        group_ids: Optional[List[int]] = None,
        is_playoff: Optional[bool] = None,
        status: Optional[MatchStatus] = None,
        playoff_round: Optional[PlayoffRound] = None
    ) -> List[Match]:
        """Get matches with flexible filtering."""
        query = "SELECT * FROM matches WHERE season_id = ?"
        params: List[Any] = [season_id]

        if group_id is not None:
            query += " AND group_id = ?"
            params.append(group_id)

        if group_ids is not None:
            if not group_ids:
                return []
            query += f" AND group_id IN ({','.join('?' * len(group_ids))})"
            params.extend(group_ids)

        if is_playoff is not None:
            query += " AND is_playoff = ?"
            params.append(int(is_playoff))

        if status is not None:
            query += " AND status = ?"
            params.append(MatchStatus(status).value)

        if playoff_round is not None:
            query += " AND playoff_round = ?"
            params.append(PlayoffRound(playoff_round).value)

        query += " ORDER BY id ASC"

        conn = self._get_connection()
        rows = conn.execute(query, params).fetchall()
        return [self._match(row) for row in rows]

    def update_match_result(
        self,
        match_id: int,
        home_goals: int,
        away_goals: int,
        status: MatchStatus = MatchStatus.FINISHED
    ) -> None:
        with self.transaction() as conn:
            cursor = conn.execute('''
                UPDATE matches SET home_goals = ?, away_goals = ?, status = ?
                WHERE id = ?
            ''', (home_goals, away_goals, MatchStatus(status).value, match_id))
            if cursor.rowcount == 0:
                raise QueryError(f"Match {match_id} not found")

    # =========================================================================
    # STANDINGS
    # =========================================================================

    def replace_standings(
        self,
        season_id: int,
        group_id: int,
        standings: List[Standing]
    ) -> int:
        """Replace the stored table of a group/season."""
        with self.transaction() as conn:
            conn.execute(
                'DELETE FROM standings WHERE season_id = ? AND group_id = ?',
                (season_id, group_id)
            )
            conn.executemany('''
                INSERT INTO standings (season_id, group_id, team_id, position, data)
                VALUES (?, ?, ?, ?, ?)
            ''', [
                (
                    season_id,
                    group_id,
                    s.team_id,
                    s.position,
                    json.dumps(s.model_dump(mode='json'), ensure_ascii=False)
                )
                for s in standings
            ])
        return len(standings)

    def get_standings(self, season_id: int, group_id: int) -> List[Standing]:
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT data FROM standings
            WHERE season_id = ? AND group_id = ?
            ORDER BY position ASC
        ''', (season_id, group_id)).fetchall()
        return [Standing.model_validate(json.loads(row['data'])) for row in rows]

    # =========================================================================
    # DIVISION PHASES
    # =========================================================================

    def get_phase(self, division_id: int, season_id: int) -> Optional[DivisionPhase]:
        conn = self._get_connection()
        row = conn.execute(
            'SELECT phase FROM division_phases WHERE division_id = ? AND season_id = ?',
            (division_id, season_id)
        ).fetchone()
        return DivisionPhase(row['phase']) if row else None

    def set_phase(self, division_id: int, season_id: int, phase: DivisionPhase) -> None:
        with self.transaction() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO division_phases (division_id, season_id, phase, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            ''', (division_id, season_id, DivisionPhase(phase).value))

    # =========================================================================
    # METADATA
    # =========================================================================

    def get_metadata(self, key: str) -> Optional[str]:
        conn = self._get_connection()
        row = conn.execute('SELECT value FROM metadata WHERE key = ?', (key,)).fetchone()
        return row['value'] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        with self.transaction() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO metadata (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
            ''', (key, value))
