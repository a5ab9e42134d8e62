"""Integration test package.

These tests exercise the web API and the command line interface end to
end through FastAPI's TestClient and Typer's CliRunner.
"""
