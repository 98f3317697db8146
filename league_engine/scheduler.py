"""
Background Scheduler for the daily league trigger.

Recomputes standings, advances playoffs and plans the next season once a day.
"""

import logging
import schedule
import time
from datetime import datetime
from typing import Optional

from .services.transition import SeasonTransitionOrchestrator
from .types import TriggerResponseDict
from . import config


def run_daily_trigger(orchestrator: Optional[SeasonTransitionOrchestrator] = None) -> TriggerResponseDict:
    """Background job: run the engine for the active season."""
    print(f"[{datetime.now()}] Starting daily league trigger...")
    try:
        orchestrator = orchestrator or SeasonTransitionOrchestrator()
        season = orchestrator.db.get_active_season()
        if season is None:
            print(f"[{datetime.now()}] No active season, nothing to do")
            return {'status': 'no_active_season'}

        result = orchestrator.run(season.id)

        # Log summary
        print(f"[{datetime.now()}] Trigger complete for {season.name}:")
        print(f"  - Divisions: {len(result.phases)}")
        print(f"  - Playoff fixtures created: {result.created_matches}")
        print(f"  - Warnings: {len(result.warnings)}")
        print(f"  - Errors: {len(result.errors)}")
        for error in result.errors:
            print(f"    [!] {error}")

        if config.AUTO_START_NEXT_SEASON and orchestrator.is_season_planned(season.id):
            next_season = orchestrator.start_next_season(season.id)
            print(f"[+] Started {next_season.name}")

        return {'status': 'completed', 'result': result.model_dump(mode='json')}

    except Exception as e:
        print(f"[{datetime.now()}] Error during daily trigger: {e}")
        return {'status': 'failed', 'message': str(e)}


def main():
    """Main entry point for scheduler."""
    logging.basicConfig(level=config.LOG_LEVEL)

    print("=" * 50)
    print("League Engine - Daily Trigger")
    print("=" * 50)

    # Run immediately on start
    print("\n[*] Running initial trigger...")
    run_daily_trigger()

    schedule.every().day.at(config.TRIGGER_TIME).do(run_daily_trigger)
    print(f"\n[*] Scheduled to run every day at {config.TRIGGER_TIME}")
    print("[*] Press Ctrl+C to stop\n")

    # Keep running
    while True:
        schedule.run_pending()
        time.sleep(60)


if __name__ == '__main__':
    main()
