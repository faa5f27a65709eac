"""
Photo Grouper command line interface.
"""

import json
import click
import logging
from dataclasses import replace
from typing import Optional

from .config import load_config
from .pipeline import process_directory
from .error_handling import PhotoGrouperError, setup_logging
from .app_insights import app_insights

logger = logging.getLogger(__name__)


@click.group()
@click.option('--log-file', type=click.Path(dir_okay=False), help='Also write logs to this file')
@click.pass_context
def main(ctx, log_file: Optional[str] = None):
    """Photo Grouper - group a shoot into moments and pick representatives."""
    if ctx.obj is None:
        ctx.obj = {}
    ctx.obj['log_file'] = log_file


@main.command()
@click.argument('input_dir', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.option('--output-dir', '-o', required=True, type=click.Path(file_okay=False, dir_okay=True),
              help='Directory for reports and cluster folders')
@click.option('--report', '-r', type=click.Path(exists=True, dir_okay=False),
              help='Prior-stage culling report (default: INPUT_DIR/culling_report.json)')
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False),
              help='YAML configuration file')
@click.option('--time-threshold', type=click.IntRange(min=0), help='Soft cluster span in minutes (reporting only)')
@click.option('--max-size', type=click.IntRange(min=1), help='Maximum images per cluster')
@click.option('--max-standalone', type=click.IntRange(min=0), help='Standalone representatives per cluster')
@click.option('--workers', type=click.IntRange(min=1), help='Concurrent metadata reads')
@click.option('--dry-run', is_flag=True, help='Write reports without copying files')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def group(ctx, input_dir: str, output_dir: str, report: Optional[str] = None,
          config: Optional[str] = None, time_threshold: Optional[int] = None,
          max_size: Optional[int] = None, max_standalone: Optional[int] = None,
          workers: Optional[int] = None, dry_run: bool = False, verbose: bool = False):
    """
    Group the photos in INPUT_DIR into clusters.

    INPUT_DIR: Directory containing the culled photos
    """
    setup_logging("DEBUG" if verbose else "INFO", ctx.obj.get('log_file'))

    overrides = {
        'time_threshold': time_threshold,
        'max_cluster_size': max_size,
        'max_standalone_representatives': max_standalone,
        'max_workers': workers,
    }
    try:
        grouping_config = replace(
            load_config(config),
            **{key: value for key, value in overrides.items() if value is not None}
        )
    except ValueError as e:
        raise click.UsageError(f"Invalid configuration: {e}")

    click.echo(f"Grouping photos in: {input_dir}")

    try:
        result = process_directory(input_dir, output_dir, prior_report=report,
                                   config=grouping_config, dry_run=dry_run)
    except PhotoGrouperError as e:
        app_insights.track_exception(e)
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    summary = result.report.get('summary', {})
    click.echo(f"Images:          {summary.get('totalImages', 0)}")
    click.echo(f"Clusters:        {summary.get('totalClusters', 0)}")
    click.echo(f"Representatives: {summary.get('totalRepresentatives', 0)}")
    click.echo(f"Compression:     {result.manifest.get('compressionRatio', 0.0)}x")
    click.echo(f"Report:          {result.output_files.get('report')}")

    for issue in result.issues:
        click.echo(f"Warning: {issue}", err=True)

    if dry_run:
        click.echo("Dry run: no files were copied")


@main.command()
@click.argument('report_json', type=click.Path(exists=True, dir_okay=False))
def summary(report_json: str):
    """Print an existing grouping report."""
    with open(report_json, 'r', encoding='utf-8') as f:
        try:
            report = json.load(f)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Could not parse {report_json}: {e}")

    info = report.get('summary', {})
    click.echo(f"Grouping report from {report.get('timestamp', 'unknown time')}")
    click.echo(f"  Images:             {info.get('totalImages', 0)}")
    click.echo(f"  Clusters:           {info.get('totalClusters', 0)}")
    click.echo(f"  Average size:       {info.get('averageClusterSize', 0)}")
    click.echo(f"  Representatives:    {info.get('totalRepresentatives', 0)}")
    click.echo(f"  Over {info.get('timeThreshold', 15)} min span:   "
               f"{info.get('clustersExceedingTimeThreshold', 0)}")

    click.echo("")
    for detail in report.get('groupDetails', []):
        span = detail.get('timeSpan', {})
        cameras = ", ".join(detail.get('cameras', []))
        click.echo(f"  {detail.get('name')}: {detail.get('fileCount')} images, "
                   f"{span.get('durationMinutes', 0)} min, {cameras}")

    statistics = report.get('statistics', {})
    for title, key in (("Size distribution", 'groupSizeDistribution'),
                       ("Time span distribution", 'timeSpanDistribution')):
        click.echo("")
        click.echo(f"{title}:")
        for bucket, count in statistics.get(key, {}).items():
            click.echo(f"  {bucket:>8}: {count}")


if __name__ == '__main__':
    main()
