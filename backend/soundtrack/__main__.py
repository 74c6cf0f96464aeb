"""Entry point for python -m soundtrack"""
from soundtrack.cli.commands import app

if __name__ == "__main__":
    app()
