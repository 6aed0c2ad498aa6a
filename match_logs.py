#!/usr/bin/env python3
"""
CLI tool for classifying log lines against a saved miner state.

The miner is only searched, never updated, so the report reflects the
templates as they were when the state was saved.

Usage:
    python match_logs.py --state drain_state.json --in server.log --out match_report.csv
"""

import csv
import json
import logging
import sys
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

import click
from tqdm import tqdm

from logdrain import DrainEngine, LogCluster, StateCodec
from logdrain.io_utils import LineSource, LinePreprocessor


class LogMatchingReport:
    """
    Collects statistics about classified log lines.
    """

    def __init__(self, max_unmatched_samples: int = 100):
        self.total_lines = 0
        self.matched_lines = 0
        self.cluster_usage = defaultdict(int)
        self.cluster_patterns: Dict[str, str] = {}
        self.unmatched_samples = []
        self.max_unmatched_samples = max_unmatched_samples

    def add_match(self, message: str, cluster: LogCluster):
        """Record a line attributed to a cluster."""
        self.total_lines += 1
        self.matched_lines += 1
        self.cluster_usage[cluster.cluster_id] += 1
        self.cluster_patterns[cluster.cluster_id] = cluster.pattern

    def add_no_match(self, message: str):
        """Record a line no cluster accepted."""
        self.total_lines += 1

        if len(self.unmatched_samples) < self.max_unmatched_samples:
            self.unmatched_samples.append(message[:200])

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        match_rate = (self.matched_lines / self.total_lines * 100) if self.total_lines > 0 else 0

        top_clusters = sorted(self.cluster_usage.items(), key=lambda x: x[1], reverse=True)[:10]
        return {
            'total_lines': self.total_lines,
            'matched_lines': self.matched_lines,
            'unmatched_lines': self.total_lines - self.matched_lines,
            'match_rate': match_rate,
            'unique_clusters_used': len(self.cluster_usage),
            'top_clusters': [
                (cluster_id, count, self.cluster_patterns[cluster_id])
                for cluster_id, count in top_clusters
            ],
            'unmatched_samples': self.unmatched_samples[:20]
        }


def classify_lines(engine: DrainEngine,
                   source: LineSource,
                   preprocess: LinePreprocessor,
                   sample_lines: Optional[int] = None,
                   progress: bool = False) -> Iterator[Tuple[int, str, Optional[LogCluster]]]:
    """Yield (line number, message, matched cluster or None) for each line."""
    lines = tqdm(source, desc="Classifying lines", unit=" lines", disable=not progress)
    for line_num, line in enumerate(lines, 1):
        if sample_lines and line_num > sample_lines:
            break
        message = preprocess(line)
        yield line_num, message, engine.search(message)


@click.command()
@click.option('--state', '-s',
              required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Miner state saved by mine_logs.py --save-state')
@click.option('--input', '--in', 'input_file',
              required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Input log file to classify')
@click.option('--output', '--out', 'output_file',
              required=True,
              type=click.Path(),
              help='Output file for classification results')
@click.option('--format', 'output_format',
              type=click.Choice(['csv', 'jsonl', 'summary']),
              default='csv',
              help='Output format (default: csv)')
@click.option('--parse-after-str',
              default='',
              help='Only classify the part of each line after the first occurrence of this string')
@click.option('--parse-after-col',
              type=click.IntRange(min=0),
              default=0,
              help='Only classify the part of each line after this column')
@click.option('--verbose', '-v',
              is_flag=True,
              help='Enable verbose output')
@click.option('--sample-lines',
              type=click.IntRange(min=1),
              help='Process only first N lines (for testing)')
def match_logs(state: str,
               input_file: str,
               output_file: str,
               output_format: str,
               parse_after_str: str,
               parse_after_col: int,
               verbose: bool,
               sample_lines: Optional[int]):
    """
    Classify log lines against the clusters of a saved miner state.

    Examples:

    \b
    # Per-line CSV report
    python match_logs.py --state drain_state.json --in server.log --out matches.csv

    \b
    # Strip the syslog prefix and write a summary
    python match_logs.py --state drain_state.json --in auth.log \\
        --out summary.txt --format summary --parse-after-str ']: '
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    try:
        engine = StateCodec().load(state)
        if verbose:
            click.echo(f"Loaded {len(engine)} clusters from: {state}")

        source = LineSource(input_file)
        preprocess = LinePreprocessor(parse_after_str, parse_after_col)
        report = LogMatchingReport()

        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        results = classify_lines(engine, source, preprocess, sample_lines, progress=verbose)
        if output_format == 'csv':
            _write_csv(results, report, output_path)
        elif output_format == 'jsonl':
            _write_jsonl(results, report, output_path)
        else:
            _write_summary(results, report, output_path, input_file)

        summary = report.get_summary()
        click.echo(f"\n✅ Matching completed!")
        click.echo(f"📊 Results:")
        click.echo(f"   • Total lines processed: {summary['total_lines']}")
        click.echo(f"   • Matched lines: {summary['matched_lines']}")
        click.echo(f"   • Match rate: {summary['match_rate']:.1f}%")
        click.echo(f"   • Unique clusters used: {summary['unique_clusters_used']}")
        click.echo(f"   • Output file: {output_path.absolute()}")

        if verbose and summary['unmatched_lines'] > 0:
            click.echo(f"\n🔍 Sample unmatched lines:")
            for i, sample in enumerate(summary['unmatched_samples'][:5], 1):
                click.echo(f"   {i}. {sample}")
            if len(summary['unmatched_samples']) > 5:
                click.echo(f"   ... and {len(summary['unmatched_samples']) - 5} more")

    except KeyboardInterrupt:
        click.echo("\n❌ Matching cancelled by user", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"\n❌ Error during matching: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


def _write_csv(results, report: LogMatchingReport, output_path: Path):
    with open(output_path, 'w', newline='', encoding='utf-8') as outfile:
        writer = csv.writer(outfile)
        writer.writerow(['line_number', 'message', 'cluster_id', 'sightings', 'pattern'])

        for line_num, message, cluster in results:
            if cluster is not None:
                report.add_match(message, cluster)
                writer.writerow([line_num, message, cluster.cluster_id, cluster.sightings, cluster.pattern])
            else:
                report.add_no_match(message)
                writer.writerow([line_num, message, '', '', ''])


def _write_jsonl(results, report: LogMatchingReport, output_path: Path):
    with open(output_path, 'w', encoding='utf-8') as outfile:
        for line_num, message, cluster in results:
            result = {
                'line_number': line_num,
                'message': message,
                'match': None
            }
            if cluster is not None:
                report.add_match(message, cluster)
                result['match'] = {
                    'cluster_id': cluster.cluster_id,
                    'sightings': cluster.sightings,
                    'pattern': cluster.pattern
                }
            else:
                report.add_no_match(message)

            json.dump(result, outfile, ensure_ascii=False)
            outfile.write('\n')


def _write_summary(results, report: LogMatchingReport, output_path: Path, input_file: str):
    for _, message, cluster in results:
        if cluster is not None:
            report.add_match(message, cluster)
        else:
            report.add_no_match(message)

    summary = report.get_summary()

    with open(output_path, 'w', encoding='utf-8') as outfile:
        outfile.write("LOG CLUSTER MATCHING SUMMARY REPORT\n")
        outfile.write("=" * 50 + "\n\n")

        outfile.write(f"Input file: {input_file}\n")
        outfile.write(f"Total lines processed: {summary['total_lines']}\n")
        outfile.write(f"Matched lines: {summary['matched_lines']}\n")
        outfile.write(f"Unmatched lines: {summary['unmatched_lines']}\n")
        outfile.write(f"Match rate: {summary['match_rate']:.1f}%\n")
        outfile.write(f"Unique clusters used: {summary['unique_clusters_used']}\n\n")

        if summary['top_clusters']:
            outfile.write("TOP CLUSTERS BY USAGE:\n")
            outfile.write("-" * 25 + "\n")
            for i, (cluster_id, count, pattern) in enumerate(summary['top_clusters'], 1):
                outfile.write(f"{i:2}. [{count:6}x] {cluster_id} {pattern}\n")
            outfile.write("\n")

        if summary['unmatched_samples']:
            outfile.write("SAMPLE UNMATCHED LINES:\n")
            outfile.write("-" * 25 + "\n")
            for i, sample in enumerate(summary['unmatched_samples'], 1):
                outfile.write(f"{i:2}. {sample}\n")


if __name__ == '__main__':
    match_logs()
