"""Run the llamaio API server."""

from llamaio.main import run


run()
