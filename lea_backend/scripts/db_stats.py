"""
Print paper-discovery statistics from the main database.

Reads ``POSTGRES_URL`` from ``.env.local``, prints one report and exits 0
whether or not the queries succeed.
"""
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from lea_backend.db.paper_stats import PaperStatsRepository
from lea_backend.services.connection_pool import DatabaseConnectionPool


def print_report(stats: PaperStatsRepository) -> None:
    print("Total papers discovered:", stats.total_papers())
    print("Total paper mentions:", stats.total_mentions())
    print("Mentions by verified researchers:", stats.verified_mentions())
    print("Unique authors mentioning papers:", stats.distinct_authors())

    date_range = stats.date_range()
    print("\nDate range:")
    print("  First paper:", date_range["first"])
    print("  Latest activity:", date_range["last"])

    print("\nMentions in last 24 hours:", stats.mentions_last_day())

    print("\nPapers by source:")
    for row in stats.papers_by_source():
        print(f"  {row['source']}: {row['count']}")


def main(env_file: str = ".env.local", pool: Optional[DatabaseConnectionPool] = None) -> int:
    load_dotenv(env_file)
    pool = pool or DatabaseConnectionPool(os.environ.get("POSTGRES_URL", ""), name="db-stats")
    try:
        print_report(PaperStatsRepository(pool))
    except Exception as e:
        print("Error:", e, file=sys.stderr)
    finally:
        pool.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
