#!/usr/bin/env python3
"""Helper script to check the .env file for store and optimizer configuration."""

from pathlib import Path
import sys

TEMPLATE = """# Supabase Configuration (Required for loading appointments)
# Get these from: https://supabase.com/dashboard -> Your Project -> Settings -> API
FARRIER_SUPABASE_URL=https://your-project-id.supabase.co
FARRIER_SUPABASE_KEY=your-service-role-key-here

# Enhanced optimizer (Optional - without a key the fixed fallback schedule is used)
# FARRIER_OPTIMIZER_API_KEY=
# FARRIER_OPTIMIZER_MODEL=gpt-4o-mini
# FARRIER_OPTIMIZER_TIMEOUT_SECONDS=30

# Route defaults
FARRIER_TIMEZONE=Europe/Rome
FARRIER_DAY_START=08:00
FARRIER_WORK_MINUTES_PER_HORSE=45
"""


def _mask(value: str) -> str:
    return value[:12] + "..." + value[-6:] if len(value) > 24 else value


def main() -> int:
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Farrier Route Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        print(f"[MISSING] .env file not found at: {env_file}")
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"[CREATED] Template written to {env_file}; fill in your credentials.")
        return 1

    print(f"[OK] Found .env file at: {env_file}")
    print()

    sys.path.insert(0, str(project_root / "src"))
    try:
        from farrier_route.config import settings
    except Exception as e:
        print(f"[ERROR] Could not load settings: {e}")
        return 1

    ok = True
    if settings.supabase_url and settings.supabase_key:
        print(f"[OK] Supabase URL: {settings.supabase_url}")
        print(f"[OK] Supabase key: {_mask(settings.supabase_key)}")
    else:
        ok = False
        print("[ERROR] Supabase is NOT configured (FARRIER_SUPABASE_URL / FARRIER_SUPABASE_KEY)")

    if settings.optimizer_configured:
        print(f"[OK] Optimizer key: {_mask(settings.optimizer_api_key)} (model {settings.optimizer_model})")
    else:
        print("[INFO] Optimizer key not set - routes use the fallback schedule")

    print(f"[OK] Timezone: {settings.timezone}, day start: {settings.day_start}")
    print()
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
