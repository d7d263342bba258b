from .run_pipeline import cli

cli()
