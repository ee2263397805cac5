"""
Courtster Club Core CLI

Developer harness for the account simulator and feature access checks
"""
import asyncio
import json
import sys

from loguru import logger

from app.config import get_core_settings
from app.errors import ClubCoreError
from app.logging_setup import configure_logging
from app.subscription import SubscriptionPolicyEngine
from app.subscription.simulator import SimulatorOverlay
from database.local_store import JsonFileStore


def build_simulator() -> SimulatorOverlay:
    return SimulatorOverlay(JsonFileStore(get_core_settings().simulator_store_path))


async def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Courtster club core developer tools")
    parser.add_argument("--log-level", default=None, help="Console log level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("presets", help="List simulator presets")

    apply_parser = sub.add_parser("apply-preset", help="Apply a simulator preset to a test account")
    apply_parser.add_argument("identity", help="Test account email")
    apply_parser.add_argument("preset", help="Preset name (see `presets`)")

    reset_parser = sub.add_parser("reset", help="Clear simulated state for a test account")
    reset_parser.add_argument("identity", help="Test account email")

    access_parser = sub.add_parser("access", help="Show subscription status and feature access")
    access_parser.add_argument("profile_id", help="Profile id")
    access_parser.add_argument("--identity", default=None, help="Account email; must match the profile for the simulator to apply")

    args = parser.parse_args()
    configure_logging(args.log_level, to_file=False)

    simulator = build_simulator()

    try:
        if args.command == "presets":
            for preset in simulator.available_presets():
                print(f"  {preset['name']:<24} {preset['label']} - {preset['description']}")

        elif args.command == "apply-preset":
            state = await simulator.apply_preset(args.identity, args.preset)
            print(json.dumps(state.model_dump(by_alias=True, mode="json"), indent=2))

        elif args.command == "reset":
            await simulator.reset(args.identity)
            print(f"Simulator reset for {args.identity}")

        elif args.command == "access":
            engine = SubscriptionPolicyEngine(simulator=simulator)
            status, simulated = await engine.resolve_status_with_source(args.profile_id, args.identity)
            access = engine.get_feature_access(status)
            print(json.dumps({
                "simulated": simulated,
                "status": status.model_dump(mode="json"),
                "access": access.model_dump(mode="json"),
            }, indent=2))

    except ClubCoreError as e:
        logger.error(f"{e.kind}: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
