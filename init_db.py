"""Print the Supabase schema for the exam session engine and check the tables are reachable."""
import argparse
import sys

from exam_session.schema import SCHEMA_SQL, statements

TABLES = ("exams", "questions", "exam_sessions", "exam_results")


def check_tables() -> bool:
    from db import get_supabase_uncached

    try:
        client = get_supabase_uncached()
    except ValueError as e:
        print(f"✗ {e}")
        return False
    ok = True
    for table in TABLES:
        try:
            response = client.table(table).select("id").limit(1).execute()
            print(f"✓ {table} table exists (rows: {len(response.data or [])})")
        except Exception as e:
            print(f"✗ {table}: {e}")
            ok = False
    return ok


def main():
    parser = argparse.ArgumentParser(description="Show the exam session schema and optionally verify it in Supabase.")
    parser.add_argument("--check", action="store_true", help="Connect with SUPABASE_URL/SUPABASE_KEY and check tables")
    args = parser.parse_args()

    print(f"Schema has {len(statements())} statements.")
    print("Supabase client cannot run DDL; paste this into the Supabase SQL Editor:")
    print(SCHEMA_SQL)

    if args.check and not check_tables():
        print("\nRun the SQL above, then check .env has SUPABASE_URL and SUPABASE_KEY")
        sys.exit(1)


if __name__ == "__main__":
    main()
