"""
Command-line interface for MethylFlow
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__, check_dependencies, get_info
from .config import Config, get_default_config, load_config, save_config
from .core import MethylFlowAnalysis
from .exceptions import MethylFlowError
from .utils import setup_logging


class CLIContext:
    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[Config] = None
        self.verbose: bool = False
        self.quiet: bool = False

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.verbose else "WARNING" if self.quiet else "INFO"


@click.group()
@click.version_option(__version__)
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Enable quiet mode (minimal output)")
@click.pass_context
def main(ctx, config, verbose, quiet):
    """
    MethylFlow: re-derive Figure 5 of the induced-methylation silencing study

    Downloads the supplementary region tables and RNA-seq counts, runs the
    differential expression analysis, associates methylated regions with
    promoters and reports the fold-change categories of methylated genes.
    """
    cli_ctx = CLIContext()
    cli_ctx.verbose = verbose
    cli_ctx.quiet = quiet

    setup_logging(level=cli_ctx.log_level)

    if config:
        cli_ctx.config_file = Path(config)
        cli_ctx.config = load_config(cli_ctx.config_file)

    ctx.obj = cli_ctx


@main.command()
def info():
    """Show MethylFlow package information"""

    info_data = get_info()

    click.echo("=" * 50)
    click.echo(f"MethylFlow v{info_data['version']}")
    click.echo("=" * 50)
    click.echo(f"Description: {info_data['description']}")
    click.echo(f"Python version: {info_data['python_version']}")
    click.echo()

    click.echo("Available modules:")
    for module in info_data["modules"]:
        click.echo(f"  - {module}")
    click.echo()

    deps = check_dependencies()
    click.echo("Dependency status:")
    for dep, available in deps.items():
        status = "✓" if available else "✗"
        click.echo(f"  {status} {dep}")


@main.command()
@click.argument("output_file", type=click.Path())
@click.option(
    "--format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format for configuration file",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file without asking")
def init_config(output_file, format, force):
    """Initialize a new MethylFlow configuration file"""

    output_path = Path(output_file)

    if output_path.exists() and not force:
        if not click.confirm(f"File {output_path} already exists. Overwrite?"):
            click.echo("Configuration initialization cancelled.")
            return

    config = get_default_config()

    try:
        if format == "json":
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w") as f:
                json.dump(config.to_dict(), f, indent=2, default=str)
        else:
            save_config(config, output_path)
    except OSError as e:
        click.echo(f"Error creating configuration file: {e}", err=True)
        sys.exit(1)

    click.echo(f"Configuration file created: {output_path}")
    click.echo("Fill in the source URLs (or place the files in <data_dir>/raw/) before running.")


@main.command()
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.option("--data-dir", type=click.Path(), help="Data directory (cache for source files)")
@click.option(
    "--method",
    type=click.Choice(["pydeseq2", "DESeq2"]),
    help="Differential expression method",
)
@click.pass_context
def run(ctx, output, data_dir, method):
    """Run the complete MethylFlow pipeline"""

    cli_ctx = ctx.obj
    config = cli_ctx.config or get_default_config()

    if output:
        config.output_dir = str(output)
    if data_dir:
        config.data_dir = str(data_dir)
    if method:
        config.differential["method"] = method

    try:
        analysis = MethylFlowAnalysis(config=config, log_level=cli_ctx.log_level)

        click.echo("Starting MethylFlow pipeline...")
        analysis.run_full_pipeline()
    except MethylFlowError as e:
        click.echo(f"Pipeline execution failed: {e}", err=True)
        if cli_ctx.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    total_time = analysis.get_execution_times().get("total", 0)
    click.echo(f"Analysis completed in {total_time:.2f} seconds. Outputs in: {config.output_dir}")

    headline = config.binning.get("headline_table", "umr")
    summary = analysis.summaries.get(headline)
    if summary is not None:
        click.echo(f"Effect classes for {headline} (n = {summary.total}):")
        for effect_class, pct in summary.class_percentages.items():
            click.echo(f"  {effect_class}: {summary.class_counts[effect_class]} ({pct:.1f}%)")


if __name__ == "__main__":
    main()
