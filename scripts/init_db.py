import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from legislate.auth.crud import bootstrap_admin_if_needed
from legislate.config import load_config
from legislate.db import init_db


def main() -> None:
    cfg = load_config()
    init_db(cfg.DB_PATH)
    boot = bootstrap_admin_if_needed(cfg)
    if boot:
        print(f"Seeded default admin: adminname={boot.adminname} uid={boot.uid}")

    print(f"DB initialized: {cfg.DB_PATH}")


if __name__ == "__main__":
    main()
