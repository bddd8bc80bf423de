from __future__ import annotations

import subprocess
import sys


def main():
    subprocess.run(
        [sys.executable, "-m", "movie_agent.entrypoints.cli", "Who directed The Matrix?", "--env", "dev"],
        check=True,
    )


if __name__ == "__main__":
    main()
