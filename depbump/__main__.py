from depbump.cli import run_cli

run_cli()
