"""Print the effective logging configuration as JSON."""

import json
import sys

from .app_logging import LogSettings


def main():
    sys.stdout.write(json.dumps(LogSettings.from_env().describe(), indent=2) + "\n")


if __name__ == "__main__":
    main()
