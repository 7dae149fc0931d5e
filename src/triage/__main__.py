"""Allow `python -m triage`."""

from triage.cli import app

if __name__ == "__main__":
    app()
