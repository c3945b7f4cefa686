import argparse
import asyncio
import logging
import os

from core.models import LobbyConfig, RoomSettings
from .server import LobbyServer

logging.basicConfig(level=logging.INFO)


def main() -> None:
    defaults = RoomSettings()
    parser = argparse.ArgumentParser(description="Card-room lobby server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 3001)))
    parser.add_argument(
        "--retention-hours",
        type=float,
        default=24,
        help="Rooms older than this are removed by the expiry sweep",
    )
    parser.add_argument(
        "--sweep-minutes",
        type=float,
        default=60,
        help="How often the expiry sweep runs",
    )
    parser.add_argument("--starting-chips", type=int, default=defaults.starting_chips)
    parser.add_argument("--sb", type=int, default=defaults.small_blind)
    parser.add_argument("--bb", type=int, default=defaults.big_blind)
    parser.add_argument("--max-players", type=int, default=defaults.max_players)
    args = parser.parse_args()

    config = LobbyConfig(
        host=args.host,
        port=args.port,
        retention_seconds=int(args.retention_hours * 3600),
        sweep_interval_seconds=int(args.sweep_minutes * 60),
        default_settings=RoomSettings(
            starting_chips=args.starting_chips,
            small_blind=args.sb,
            big_blind=args.bb,
            max_players=args.max_players,
        ),
    )

    server = LobbyServer(config)
    asyncio.run(server.start())


if __name__ == "__main__":
    main()
