"""Main entry point dispatcher for keel commands."""

import sys


def main():
    """Dispatch to appropriate submodule based on command."""
    print("Use 'python -m keel.agent' to run the agent")
    print("Use 'keelctl' for the command-line interface")
    sys.exit(1)


if __name__ == "__main__":
    main()
