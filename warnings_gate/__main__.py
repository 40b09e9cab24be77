from warnings_gate.cli import cli

cli()
