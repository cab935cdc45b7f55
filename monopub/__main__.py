from monopub.cli import cli

cli()
