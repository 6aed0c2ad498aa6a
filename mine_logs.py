#!/usr/bin/env python3
"""
CLI tool for mining log templates from a log file.

Usage:
    python mine_logs.py server.log --parse-after-str ']: ' --delimiters '_' --save-state drain_state.json
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

import click
from tqdm import tqdm

from logdrain import DrainConfig, DrainEngine, StateCodec
from logdrain.io_utils import FromLine, JSONLWriter, LineSource, LinePreprocessor


PROGRESS_EVERY = 10000


class FromLineParamType(click.ParamType):
    """Click type for ``tail -n`` style line positions: ``N`` or ``+N``."""
    name = "NUM"

    def convert(self, value, param, ctx):
        if isinstance(value, FromLine):
            return value
        try:
            return FromLine.parse(str(value))
        except ValueError as e:
            self.fail(str(e), param, ctx)


@click.command()
@click.argument('log_file',
                type=click.Path(exists=True, dir_okay=False))
@click.option('--depth',
              type=int,
              default=4,
              help='Prefix tree depth, including the root and leaf levels (min 3)')
@click.option('--similarity-threshold', '--st',
              type=float,
              default=0.4,
              help='Minimum similarity for a line to join a cluster, in (0.1, 1]')
@click.option('--max-children',
              type=int,
              default=100,
              help='Maximum number of children of a prefix tree node (min 2)')
@click.option('--delimiters',
              default='',
              help='Characters splitting tokens in addition to whitespace, e.g. "_"')
@click.option('--parse-after-str',
              default='',
              help='Only mine the part of each line after the first occurrence of this string')
@click.option('--parse-after-col',
              type=click.IntRange(min=0),
              default=0,
              help='Only mine the part of each line after this column')
@click.option('--lines', '-n', 'from_line',
              type=FromLineParamType(),
              default='0',
              help='Mine the last NUM lines, or use +NUM to start at line NUM; 0 mines the whole file')
@click.option('--load-state',
              type=click.Path(exists=True, dir_okay=False),
              help='Resume mining from a saved miner state (mining options are then taken from the state)')
@click.option('--save-state',
              type=click.Path(dir_okay=False),
              help='Save the miner state to this JSON file')
@click.option('--export', 'export_file',
              type=click.Path(dir_okay=False),
              help='Export clusters to a JSONL file')
@click.option('--top',
              type=click.IntRange(min=0),
              default=0,
              help='Only print the NUM most frequent clusters (0 prints all)')
@click.option('--verbose', '-v',
              is_flag=True,
              help='Enable verbose output')
def mine_logs(log_file: str,
              depth: int,
              similarity_threshold: float,
              max_children: int,
              delimiters: str,
              parse_after_str: str,
              parse_after_col: int,
              from_line: FromLine,
              load_state: Optional[str],
              save_state: Optional[str],
              export_file: Optional[str],
              top: int,
              verbose: bool):
    """
    Mine log templates from a log file.

    Every line is attributed to a cluster of similar lines whose template
    replaces the varying tokens with <*>. Clusters are printed by number of
    sightings, most frequent first.

    Examples:

    \b
    # Mine an sshd log, skipping the syslog prefix
    python mine_logs.py SSH.log --parse-after-str ']: ' --delimiters '_'

    \b
    # Mine the last 1000 lines and keep the state for later runs
    python mine_logs.py app.log -n 1000 --save-state drain_state.json

    \b
    # Continue mining with a previously saved state
    python mine_logs.py app.log --load-state drain_state.json --save-state drain_state.json
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    try:
        codec = StateCodec()
        if load_state:
            engine = codec.load(load_state)
            if verbose:
                click.echo(f"Resuming from {load_state} with {len(engine)} clusters")
        else:
            engine = DrainEngine(DrainConfig(
                depth=depth,
                similarity_threshold=similarity_threshold,
                max_child_per_node=max_children,
                additional_delimiters=delimiters
            ))

        if verbose:
            click.echo(f"Mining templates from: {log_file}")
            click.echo(f"Configuration: {engine.config}")
            click.echo(f"Starting at: {from_line}")
            click.echo()

        preprocess = LinePreprocessor(parse_after_str, parse_after_col)
        source = LineSource(log_file, from_line)

        line_count = 0
        started = time.perf_counter()
        for line in tqdm(source, desc="Mining lines", unit=" lines", disable=not verbose):
            line_count += 1
            engine.parse_log_message(preprocess(line))
            if verbose and line_count % PROGRESS_EVERY == 0:
                tqdm.write(f"{len(engine):4d} clusters so far")
        elapsed = time.perf_counter() - started

        if verbose:
            rate = line_count / elapsed if elapsed > 0 else 0.0
            click.echo(f"---- Done processing file. Total of {line_count} lines, "
                       f"done in {elapsed:.3f} s ({rate:.1f} lines/sec), {len(engine)} clusters")

        clusters = engine.sorted_clusters()
        for cluster in clusters[:top] if top else clusters:
            click.echo(str(cluster))

        if save_state:
            output_path = Path(save_state)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            codec.save(engine, output_path)
            if verbose:
                click.echo(f"Saved miner state to: {output_path.absolute()}")

        if export_file:
            output_path = Path(export_file)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with JSONLWriter(str(output_path)) as writer:
                writer.write_clusters(clusters)
            if verbose:
                click.echo(f"Exported {len(clusters)} clusters to: {output_path.absolute()}")

    except KeyboardInterrupt:
        click.echo("\n❌ Mining cancelled by user", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"\n❌ Error during mining: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


@click.command()
@click.option('--state', '-s',
              required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Miner state saved by mine_logs.py --save-state')
@click.option('--stats',
              is_flag=True,
              help='Show detailed statistics about the clusters')
def analyze_state(state: str, stats: bool):
    """
    Analyze a saved miner state and show statistics.

    Reports the configuration, the cluster count, the most frequent
    templates and, with --stats, template length and wildcard metrics.
    """
    try:
        engine = StateCodec().load(state)
        clusters = engine.sorted_clusters()

        if not clusters:
            click.echo("No clusters found in the state.")
            return

        click.echo(f"📋 Miner State Analysis for: {state}")
        click.echo(f"=" * 60)

        total_sightings = sum(c.sightings for c in clusters)
        click.echo(f"Configuration: {engine.config}")
        click.echo(f"Total clusters: {len(clusters)}")
        click.echo(f"Total sightings: {total_sightings}")
        click.echo()

        if stats:
            lengths = [len(c.template) for c in clusters]
            params = [c.param_count for c in clusters]
            nodes = sum(1 for _ in engine.prefix_tree.iter_nodes())

            click.echo("Template Shape:")
            click.echo(f"  Average length: {sum(lengths) / len(lengths):.1f}")
            click.echo(f"  Maximum length: {max(lengths)}")
            click.echo(f"  Minimum length: {min(lengths)}")
            click.echo(f"  Average wildcards: {sum(params) / len(params):.1f}")
            click.echo(f"  Clusters without wildcards: {sum(1 for p in params if p == 0)}")
            click.echo(f"  Prefix tree nodes: {nodes}")
            click.echo()

        click.echo("Most Frequent Templates (top 10):")
        for i, cluster in enumerate(clusters[:10], 1):
            pattern = cluster.pattern
            display_pattern = pattern[:60] + "..." if len(pattern) > 60 else pattern
            percentage = (cluster.sightings / total_sightings) * 100
            click.echo(f"  {i:2}. [{cluster.sightings:7}x {percentage:5.1f}%] {display_pattern}")

    except Exception as e:
        click.echo(f"❌ Error analyzing state: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    mine_logs()
