# run.py
import os
import sys

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from mcbackup import run_backup
from mcbackup.core.config import APP_VERSION

if __name__ == "__main__":
    print(f"===========================================================")
    print(f" 💾 MINECRAFT LIVE BACKUP v{APP_VERSION}")
    print(f"===========================================================")

    sys.exit(run_backup())
