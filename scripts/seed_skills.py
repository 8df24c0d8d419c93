from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from speechscore.clients.supabase import SupabaseClient
from speechscore.config import SettingsError, load_settings
from speechscore.scoring.catalog import SkillCatalog, catalog_from_settings

SKILLS_TABLE = "skills"


def _skill_rows(catalog: SkillCatalog) -> list[dict[str, Any]]:
    return [
        {
            "skill_id": definition.id,
            "name": definition.name,
            "category": catalog.require_category(definition.id),
            "is_good_skill": definition.is_good_skill,
            "max_score": definition.max_score,
            "weight": definition.weight,
        }
        for definition in catalog.definitions
    ]


async def _run(*, dry_run: bool, batch_size: int) -> int:
    try:
        settings = load_settings()
    except SettingsError as exc:
        raise ValueError(str(exc)) from exc

    rows = _skill_rows(catalog_from_settings(settings))
    if dry_run:
        print(json.dumps(rows, indent=2))
        return 0

    client = SupabaseClient(
        url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )
    try:
        for start in range(0, len(rows), batch_size):
            await client.upsert(
                SKILLS_TABLE, rows[start : start + batch_size], on_conflict="skill_id"
            )
    finally:
        await client.close()

    print(f"Seed complete: {len(rows)} skills")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the skill catalog into Supabase")
    parser.add_argument("--dry-run", action="store_true", help="print rows instead of writing")
    parser.add_argument("--batch-size", type=int, default=50)
    args = parser.parse_args()

    try:
        return asyncio.run(_run(dry_run=args.dry_run, batch_size=args.batch_size))
    except Exception as exc:
        print(f"Seed failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
