from rtmctl.main import cli

cli()
