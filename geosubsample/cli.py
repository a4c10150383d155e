"""
Command line interface for spatial subsampling.

Reads occurrence tables from CSV, runs one sampler or the diversity summary
and writes the result back to CSV. Option values left unset fall back to
the configuration (defaults merged with config.yml).
"""

import dataclasses
import functools
from pathlib import Path
from typing import Any, Optional

import click
import pandas as pd

from .abstractions.types import OccurrenceDataset
from .config import Config, ProcessingConfig
from .diversity import DiversitySummarizer, summaries_to_frame
from .exceptions import GeoSubsampleError
from .infrastructure.logging import LoggingContext, get_logger, setup_logging
from .sampling import BandSampler, ClusterSampler, RadialSampler, dedupe

logger = get_logger(__name__)


def _setting(ctx: click.Context, key: str, value: Any) -> Any:
    """Command line value, or the configured one when not given."""
    if value is not None:
        return value
    return ctx.obj['config'].get(key)


def _processing(ctx: click.Context, workers: Optional[int]) -> ProcessingConfig:
    cfg = ctx.obj['config']
    processing = ProcessingConfig.from_config(cfg)
    if workers is not None:
        processing = ProcessingConfig(
            max_workers=workers,
            parallel_backend=processing.parallel_backend,
            chunk_size=processing.chunk_size
        )
    return processing


def _read_dataset(ctx: click.Context, input_path: str, taxon_col: str, site_col: str,
                  x_col: str, y_col: str, collection_col: Optional[str],
                  crs: Optional[str]) -> OccurrenceDataset:
    frame = pd.read_csv(input_path)
    dataset = OccurrenceDataset.from_frame(
        frame, taxon_col=taxon_col, site_col=site_col, x_col=x_col, y_col=y_col,
        collection_col=collection_col,
        crs=_setting(ctx, 'sampling.crs', crs),
        site_coordinates=ctx.obj['config'].get('sampling.site_coordinates', 'first')
    )
    click.echo(f"Loaded {dataset.n_records} records at {dataset.n_sites} sites")
    return dataset


def dataset_options(func):
    """Column selectors and sampler options shared by the sampling commands."""
    options = [
        click.argument('input_path', type=click.Path(exists=True, dir_okay=False)),
        click.option('--output', '-o', required=True, type=click.Path(dir_okay=False),
                     help='CSV file for the subsamples'),
        click.option('--taxon-col', default='taxon_id', show_default=True, help='Taxon column'),
        click.option('--site-col', default='site_id', show_default=True, help='Site (cell) id column'),
        click.option('--x-col', default='x', show_default=True, help='Longitude / x column'),
        click.option('--y-col', default='y', show_default=True, help='Latitude / y column'),
        click.option('--collection-col', default=None, help='Collection id column'),
        click.option('--crs', type=click.Choice(['geographic', 'planar']), default=None,
                     help='Coordinate system of the input'),
        click.option('--full', is_flag=True, help='Emit occurrence records instead of site locations'),
        click.option('--seed', type=int, default=None, help='Random seed'),
        click.option('--workers', type=int, default=None, help='Worker processes'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def report_errors(func):
    """Turn package errors into a clean command failure."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GeoSubsampleError as e:
            logger.debug("Command failed", exc_info=True)
            click.echo(f"❌ {e}", err=True)
            raise click.Abort()
    return wrapper


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--log-file', type=click.Path(dir_okay=False), default=None,
              help='Also write JSON logs to this file')
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              default=None, help='YAML configuration file')
@click.pass_context
def cli(ctx, verbose, log_file, config_file):
    """Spatially standardised subsampling of occurrence data."""
    cfg = Config(Path(config_file)) if config_file else Config()
    setup_logging(cfg, log_file=log_file, log_level='DEBUG' if verbose else None)
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command()
@dataset_options
@click.option('--radius', type=float, default=None, help='Radius around each seed site')
@click.option('--site-quota', type=int, default=None, help='Sites per subsample, seed included')
@click.option('--iterations', type=int, default=None, help='Number of subsamples')
@click.option('--weighted', is_flag=True, help='Inverse-distance weighted companions')
@click.option('--restrict-seeds', is_flag=True,
              help='Only seed at sites whose radius holds the quota')
@click.pass_context
@report_errors
def cookies(ctx, input_path, output, taxon_col, site_col, x_col, y_col, collection_col, crs,
            full, seed, workers, radius, site_quota, iterations, weighted, restrict_seeds):
    """Subsample sites within a fixed radius of random seed sites."""
    dataset = _read_dataset(ctx, input_path, taxon_col, site_col, x_col, y_col, collection_col, crs)
    sampler = RadialSampler(
        weight_power=_setting(ctx, 'radial.weight_power', None),
        metric=_setting(ctx, 'sampling.distance_metric', None),
        processing=_processing(ctx, workers)
    )

    with LoggingContext().run('cookies') as run:
        collection = sampler.sample(
            dataset,
            radius=_setting(ctx, 'radial.radius', radius),
            site_quota=_setting(ctx, 'radial.site_quota', site_quota),
            iterations=_setting(ctx, 'sampling.iterations', iterations),
            weighted=weighted or ctx.obj['config'].get('radial.weighted', False),
            output_mode='full' if full else _setting(ctx, 'sampling.output_mode', None),
            seed=_setting(ctx, 'sampling.seed', seed),
            restrict_seeds=restrict_seeds or ctx.obj['config'].get('radial.restrict_seeds', False)
        )
        run.report_draws(len(collection), collection.n_requested)

    collection.to_frame().to_csv(output, index=False)
    click.echo(f"✅ {len(collection)} subsamples written to {output} "
               f"({collection.n_omitted} iterations omitted)")


@cli.command()
@dataset_options
@click.option('--max-diameter', type=float, default=None, help='Cap on cluster spanning tree length')
@click.option('--site-quota', type=int, default=None, help='Rarefy each cluster to this many sites')
@click.option('--min-sites', type=int, default=None, help='Omit clusters with fewer sites')
@click.option('--iterations', type=int, default=None, help='Number of subsamples')
@click.pass_context
@report_errors
def clustr(ctx, input_path, output, taxon_col, site_col, x_col, y_col, collection_col, crs,
           full, seed, workers, max_diameter, site_quota, min_sites, iterations):
    """Subsample nearest-neighbour clusters of bounded spanning tree length."""
    dataset = _read_dataset(ctx, input_path, taxon_col, site_col, x_col, y_col, collection_col, crs)
    sampler = ClusterSampler(
        metric=_setting(ctx, 'sampling.distance_metric', None),
        processing=_processing(ctx, workers)
    )

    with LoggingContext().run('clustr') as run:
        collection = sampler.sample(
            dataset,
            max_diameter=_setting(ctx, 'cluster.max_diameter', max_diameter),
            site_quota=_setting(ctx, 'cluster.site_quota', site_quota),
            min_sites=_setting(ctx, 'cluster.min_sites', min_sites),
            iterations=_setting(ctx, 'sampling.iterations', iterations),
            output_mode='full' if full else _setting(ctx, 'sampling.output_mode', None),
            seed=_setting(ctx, 'sampling.seed', seed)
        )
        run.report_draws(len(collection), collection.n_requested)

    collection.to_frame().to_csv(output, index=False)
    click.echo(f"✅ {len(collection)} subsamples written to {output} "
               f"({collection.n_omitted} iterations omitted)")


@cli.command()
@dataset_options
@click.option('--band-width', type=float, default=None, help='Band width in degrees latitude')
@click.option('--site-quota', type=int, default=None, help='Sites per subsample')
@click.option('--iterations-per-band', type=int, default=None, help='Subsamples per band')
@click.option('--absolute', 'use_absolute_latitude', is_flag=True,
              help='Fold southern latitudes onto northern ones')
@click.pass_context
@report_errors
def bandit(ctx, input_path, output, taxon_col, site_col, x_col, y_col, collection_col, crs,
           full, seed, workers, band_width, site_quota, iterations_per_band, use_absolute_latitude):
    """Subsample sites within latitude bands."""
    dataset = _read_dataset(ctx, input_path, taxon_col, site_col, x_col, y_col, collection_col, crs)
    sampler = BandSampler(
        metric=_setting(ctx, 'sampling.distance_metric', None),
        processing=_processing(ctx, workers)
    )

    with LoggingContext().run('bandit') as run:
        bands = sampler.sample(
            dataset,
            band_width=_setting(ctx, 'band.band_width', band_width),
            site_quota=_setting(ctx, 'band.site_quota', site_quota),
            iterations_per_band=_setting(ctx, 'band.iterations_per_band', iterations_per_band),
            use_absolute_latitude=(use_absolute_latitude
                                   or ctx.obj['config'].get('band.use_absolute_latitude', False)),
            output_mode='full' if full else _setting(ctx, 'sampling.output_mode', None),
            seed=_setting(ctx, 'sampling.seed', seed)
        )
        run.report_draws(sum(len(c) for c in bands.values()),
                         sum(c.n_requested for c in bands.values()))

    frames = []
    for label, collection in bands.items():
        frame = collection.to_frame()
        frame.insert(0, 'band', label)
        frames.append(frame)

    if not frames:
        click.echo("No band holds enough sites for the quota.", err=True)
        raise click.Abort()

    pd.concat(frames, ignore_index=True).to_csv(output, index=False)
    click.echo(f"✅ {len(bands)} bands written to {output}")


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', required=True, type=click.Path(dir_okay=False),
              help='CSV file for the deduplicated records')
@click.option('--taxon-col', default='taxon_id', show_default=True, help='Taxon column')
@click.option('--coord-cols', default='x,y', show_default=True,
              help='Comma-separated location columns')
@click.option('--keep-missing', is_flag=True, help='Keep rows with missing key values')
@report_errors
def uniqify(input_path, output, taxon_col, coord_cols, keep_missing):
    """Keep one occurrence per taxon and location."""
    frame = pd.read_csv(input_path)
    result = dedupe(
        frame, taxon_key=taxon_col,
        coordinate_keys=tuple(c.strip() for c in coord_cols.split(',') if c.strip()),
        drop_missing=not keep_missing
    )
    result.to_csv(output, index=False)
    click.echo(f"✅ {len(result)}/{len(frame)} records written to {output}")


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', required=True, type=click.Path(dir_okay=False),
              help='CSV file for the summary table')
@click.option('--taxon-col', default='taxon_id', show_default=True, help='Taxon column')
@click.option('--x-col', default='x', show_default=True, help='Longitude / x column')
@click.option('--y-col', default='y', show_default=True, help='Latitude / y column')
@click.option('--collection-col', default=None, help='Collection column (incidence rarefaction)')
@click.option('--site-col', default='site_id', show_default=True,
              help='Site id column; distinct locations count as sites if absent')
@click.option('--group-col', default='iteration', show_default=True,
              help='Column separating subsamples; the whole table is one subsample if absent')
@click.option('--crs', type=click.Choice(['geographic', 'planar']), default=None,
              help='Coordinate system of the input')
@click.option('--classical-quota', type=int, default=None, help='Rarefy to this sample size')
@click.option('--coverage-quota', type=float, default=None, help='Rarefy to this coverage')
@click.option('--omit-dominant', is_flag=True,
              help='Drop the most common taxon before rarefaction')
@click.option('--allow-extrapolation', is_flag=True,
              help='Allow quotas beyond the observed sample')
@click.option('--seed', type=int, default=None, help='Random seed for bootstrap intervals')
@click.option('--workers', type=int, default=None, help='Worker processes')
@click.pass_context
@report_errors
def summarize(ctx, input_path, output, taxon_col, x_col, y_col, collection_col, site_col,
              group_col, crs, classical_quota, coverage_quota, omit_dominant, allow_extrapolation,
              seed, workers):
    """Summarise the spatial and taxonomic content of subsamples."""
    frame = pd.read_csv(input_path)
    if group_col in frame.columns:
        groups = [(key, part) for key, part in frame.groupby(group_col, sort=False)]
    else:
        groups = [(None, frame)]

    summarizer = DiversitySummarizer(
        crs=_setting(ctx, 'sampling.crs', crs),
        metric=_setting(ctx, 'sampling.distance_metric', None),
        processing=_processing(ctx, workers),
        n_bootstrap=_setting(ctx, 'summary.n_bootstrap', None),
        confidence_level=_setting(ctx, 'summary.confidence_level', None)
    )

    with LoggingContext().run('sdsumry'):
        rows = summarizer.summarize(
            [part for _, part in groups],
            taxon_key=taxon_col,
            coordinate_keys=(x_col, y_col),
            collections_key=collection_col,
            site_key=site_col,
            classical_quota=_setting(ctx, 'summary.classical_quota', classical_quota),
            coverage_quota=_setting(ctx, 'summary.coverage_quota', coverage_quota),
            omit_most_common_taxon=(omit_dominant
                                    or ctx.obj['config'].get('summary.omit_most_common_taxon', False)),
            allow_extrapolation=(allow_extrapolation
                                 or ctx.obj['config'].get('summary.allow_extrapolation', False)),
            seed=_setting(ctx, 'sampling.seed', seed)
        )

    rows = [dataclasses.replace(row, iteration=key) if key is not None else row
            for row, (key, _) in zip(rows, groups)]
    summaries_to_frame(rows).to_csv(output, index=False)
    click.echo(f"✅ {len(rows)} summary rows written to {output}")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
