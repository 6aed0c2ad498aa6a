#!/usr/bin/env python3
"""
Demo script for the online log template miner.
"""

import tempfile
from pathlib import Path

from logdrain import DrainEngine, StateCodec
from logdrain.io_utils import JSONLWriter, JSONLReader


SAMPLE_LOG_LINES = [
    "Dec 10 06:55:46 LabSZ sshd[24200]: reverse mapping checking getaddrinfo for ns.marryaldkfaczcz.com [173.234.31.186] failed - POSSIBLE BREAK-IN ATTEMPT!",
    "Dec 10 06:55:46 LabSZ sshd[24200]: Invalid user webmaster from 173.234.31.186",
    "Dec 10 06:55:46 LabSZ sshd[24200]: input_userauth_request: invalid user webmaster [preauth]",
    "Dec 10 06:55:48 LabSZ sshd[24200]: Failed password for invalid user webmaster from 173.234.31.186 port 38926 ssh2",
    "Dec 10 06:55:48 LabSZ sshd[24200]: Connection closed by 173.234.31.186 [preauth]",
    "Dec 10 07:02:47 LabSZ sshd[24203]: Connection closed by 212.47.254.145 [preauth]",
    "Dec 10 07:07:38 LabSZ sshd[24206]: Invalid user test9 from 52.80.34.196",
    "Dec 10 07:07:38 LabSZ sshd[24206]: input_userauth_request: invalid user test9 [preauth]",
    "Dec 10 07:07:45 LabSZ sshd[24206]: Failed password for invalid user test9 from 52.80.34.196 port 36060 ssh2",
    "Dec 10 07:07:45 LabSZ sshd[24206]: Connection closed by 52.80.34.196 [preauth]",
    "Dec 10 07:08:28 LabSZ sshd[24208]: reverse mapping checking getaddrinfo for ns.marryaldkfaczcz.com [173.234.31.186] failed - POSSIBLE BREAK-IN ATTEMPT!",
    "Dec 10 07:08:28 LabSZ sshd[24208]: Invalid user webmaster from 173.234.31.186",
    "Dec 10 07:08:30 LabSZ sshd[24208]: Failed password for invalid user webmaster from 173.234.31.186 port 39257 ssh2",
    "Dec 10 07:11:42 LabSZ sshd[24224]: Failed password for root from 112.95.230.3 port 45378 ssh2",
    "Dec 10 07:13:43 LabSZ sshd[24227]: Failed password for root from 112.95.230.3 port 47017 ssh2",
]


def main():
    """Run the demonstration."""
    print("🚀 Online Log Template Mining Demo")
    print("=" * 50)

    # additional "_" delimiter splits input_userauth_request into words
    engine = DrainEngine(depth=4, additional_delimiters="_")

    print("\n⛏️  Mining sample sshd lines...")
    for line in SAMPLE_LOG_LINES:
        content = line[line.index("]: ") + 3:]
        cluster = engine.parse_log_message(content)
        print(f"   {content[:60]:60} -> {cluster.cluster_id[:8]}")

    print(f"\n📋 Mined {len(engine)} clusters:")
    for i, cluster in enumerate(engine.sorted_clusters(), 1):
        print(f"   {i:2}. [{cluster.sightings:3}x] {cluster.pattern}")

    print("\n🔍 Classifying unseen lines (read-only):")
    test_lines = [
        "Failed password for admin from 10.0.0.1 port 22 ssh2",
        "Connection closed by 10.0.0.1 [preauth]",
        "Server listening on 0.0.0.0 port 22.",
    ]
    for line in test_lines:
        match = engine.search(line)
        if match:
            print(f"   ✅ {line}")
            print(f"      -> {match.pattern}")
        else:
            print(f"   ❌ {line}")
            print(f"      -> no matching cluster")

    with tempfile.TemporaryDirectory() as temp_dir:
        state_file = Path(temp_dir) / "drain_state.json"
        export_file = Path(temp_dir) / "clusters.jsonl"

        print("\n💾 Saving and reloading miner state...")
        codec = StateCodec()
        codec.save(engine, state_file)
        reloaded = codec.load(state_file)
        same = reloaded.clusters() == engine.clusters() and reloaded.prefix_tree == engine.prefix_tree
        print(f"   State file: {state_file.stat().st_size} bytes, identical after reload: {same}")

        reloaded.parse_log_message("Failed password for guest from 10.0.0.2 port 2222 ssh2")
        print(f"   Resumed mining, clusters: {len(reloaded)}")

        with JSONLWriter(export_file) as writer:
            writer.write_clusters(reloaded.sorted_clusters())
        print(f"   Exported {len(JSONLReader(export_file).read_clusters())} clusters to JSONL")

    print("\n🎉 Demo completed!")


if __name__ == '__main__':
    main()
