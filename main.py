import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
from typing import List

import requests

from config.config import SystemConfig, load_config
from protocol import EventBus, Registrar, VoterClient, register_cohort
from utils.utils import create_performance_report, format_duration, get_system_info, setup_logging
from voting import Voter, VotingError
from zk.zk_proofs import TrustedSetupError, ensure_ptau, get_proof_service

logger = logging.getLogger(__name__)

DEMO_ATTRIBUTES = [
    {"age": "age>=18", "citizenship": "citizen", "region": "region=US"},
    {"age": "age>=18", "region": "region=EU"},
    {"region": "region=US"},
]


def make_voters(num_voters: int, seed: int = 42) -> List[Voter]:
    rng = random.Random(seed)
    return [Voter(attributes=rng.choice(DEMO_ATTRIBUTES)) for _ in range(num_voters)]


async def run_demo(num_voters: int, config: SystemConfig) -> bool:
    print("=" * 80)
    print("ANONYMOUS VERIFIABLE VOTING - IN-PROCESS DEMONSTRATION")
    print("   Poseidon commitments + Merkle registry + nullifier ballots")
    print("=" * 80)

    bus = EventBus()
    registrar = Registrar(get_proof_service(config.zk_config), config.registrar_config, bus)
    voters = make_voters(num_voters)
    clients = [VoterClient(voter, registrar, bus) for voter in voters]

    try:
        print(f"\nRegistering {num_voters} voters...")
        await register_cohort(registrar, clients)
        print(f" Registration closed, merkle root {str(registrar.registry.merkle_tree_root())[:24]}...")

        organizer = clients[0]
        open_election = await organizer.create_election("Should the park open on Sundays?")
        restricted = await organizer.create_election("Fund the US adult transit pass?", "age>=18", "", "region=US")
        for client in clients:
            await client.sync()

        print("\nCasting votes...")
        rejected = 0
        for i, client in enumerate(clients):
            for election in (open_election, restricted):
                try:
                    await client.vote(election.commitment, i % 3 != 0)
                except VotingError as e:
                    rejected += 1
                    logger.info(f"Voter {i} could not vote: {e}")

        # Second ballot from the same voter must be refused
        try:
            await clients[0].vote(open_election.commitment, False)
        except VotingError as e:
            print(f" Double vote refused: {e}")

        print("\n" + "=" * 40)
        print("ELECTION RESULTS")
        print("=" * 40)
        print(registrar.list_elections())
        for election in (open_election, restricted):
            print(f"\n{election.summary}")
            print(registrar.tally(election.commitment))
        print(f"\nRejected or ineligible attempts: {rejected}")

        for client in clients:
            await client.sync()
        mirrors_agree = all(
            client.tally(e.commitment) == registrar.tally(e.commitment)
            for client in clients for e in (open_election, restricted)
        )
        print(f"Voter mirrors agree with registrar: {'PASSED' if mirrors_agree else 'FAILED'}")

        summary = registrar.performance_monitor.get_summary()
        verify_stats = summary['operations'].get('verify_vote')
        if verify_stats:
            print(f"Average verification time: {format_duration(verify_stats['avg_duration'])}")

        report_path = Path("results/performance_report.txt")
        report_path.parent.mkdir(exist_ok=True)
        report_path.write_text(create_performance_report(registrar.performance_monitor))
        print(f"\nPerformance report: {report_path}")

        return mirrors_agree
    finally:
        for client in clients:
            await client.close()
        registrar.shutdown()


def run_setup(config: SystemConfig) -> bool:
    """Fetch and verify the Powers of Tau file used for the Groth16 setup"""
    try:
        ptau_file = ensure_ptau(config.zk_config)
    except (TrustedSetupError, requests.RequestException) as e:
        print(f"\n Trusted setup failed: {e}")
        return False
    print(f"Powers of Tau ready: {ptau_file}")
    return True


def main():
    parser = argparse.ArgumentParser(
        description='Anonymous Verifiable Voting')
    parser.add_argument('--voters', type=int, default=12,
                        help='Number of voters')
    parser.add_argument('--config', type=str,
                        default=None, help='Config file path')
    parser.add_argument(
        '--mode', choices=['demo', 'info', 'setup'], default='demo')

    args = parser.parse_args()

    config = load_config(Path(args.config) if args.config else None)
    setup_logging(config.log_level, config.log_dir / "voting.log")

    if args.mode == 'info':
        for key, value in get_system_info().items():
            print(f"{key}: {value}")
        sys.exit(0)

    if args.mode == 'setup':
        sys.exit(0 if run_setup(config) else 1)

    if args.voters < 1:
        parser.error('--voters must be at least 1')

    try:
        success = asyncio.run(run_demo(args.voters, config))
    except VotingError as e:
        print(f"\n Demo failed: {e}")
        success = False
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
