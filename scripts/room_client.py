#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import itertools
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

from websockets.asyncio.client import ClientConnection, connect

logging.basicConfig(level=logging.INFO)

# RoomClient is a terminal front-end for one seat: every prompt line becomes
# one request and the reply is rendered before the next prompt.

HELP = """Commands:
  fold | call | check | allin      betting actions (check is a zero call)
  raise <total>                    raise your bet for the round to <total>
  hand                             deal a new hand (host only)
  set <key>=<value> [...]          update settings (host only), e.g. set bigBlind=40
  sync                             refresh the table
  quit                             leave"""


@dataclass
class Seat:
    room_code: str
    player_id: str
    is_host: bool


def parse_command(line: str) -> Optional[Dict[str, Any]]:
    """Turn a prompt line into a request body (without roomCode / ids)."""
    words = line.strip().split()
    if not words:
        return None
    verb = words[0].lower()
    if verb in ("fold", "call"):
        return {"type": "action", "action": verb}
    if verb == "check":
        return {"type": "action", "action": "call"}
    if verb in ("allin", "all-in"):
        return {"type": "action", "action": "all-in"}
    if verb == "raise" and len(words) == 2 and words[1].isdigit():
        return {"type": "action", "action": "raise", "amount": int(words[1])}
    if verb == "hand":
        return {"type": "new_hand"}
    if verb == "sync":
        return {"type": "sync"}
    if verb == "set" and len(words) > 1:
        patch: Dict[str, int] = {}
        for pair in words[1:]:
            key, _, value = pair.partition("=")
            if not value.isdigit():
                return None
            patch[key] = int(value)
        return {"type": "update_settings", "settings": patch}
    return None


def render_game(game: Dict[str, Any], player_id: str) -> str:
    lines = [f"Room {game['roomCode']} | started={game['gameStarted']} | settings={game['settings']}"]
    names = {member["id"]: member["name"] for member in game["players"]}
    state = game.get("gameState")
    if not state:
        lines.append("Players: " + ", ".join(names.values()))
        return "\n".join(lines)

    lines.append(
        f"Hand {state['handNumber']} | {state['phase']} | pot={state['pot']} | current bet={state['currentBet']}"
    )
    for idx, player in enumerate(state["players"]):
        marker = "→" if idx == state["currentPlayerIndex"] and state["awaitingAction"] else " "
        tags = []
        if player["folded"]:
            tags.append("FOLD")
        if player["allIn"]:
            tags.append("ALL-IN")
        if player["id"] == player_id:
            tags.append("ME")
            hole = " ".join(f"{card['rank']}{card['suit'][0]}" for card in player["cards"])
            tags.append(hole)
        label = f" [{', '.join(tags)}]" if tags else ""
        lines.append(
            f"  {marker}{names.get(player['id'], player['id'])}: chips={player['chips']} bet={player['bet']}{label}"
        )
    if not state["awaitingAction"]:
        lines.append("Nobody left to act; the host can deal a new hand.")
    return "\n".join(lines)


class RoomClient:
    def __init__(self, url: str, name: str, room_code: Optional[str], settings: Dict[str, int]) -> None:
        self.url = url
        self.name = name
        self.room_code = room_code
        self.settings = settings
        self.websocket: Optional[ClientConnection] = None
        self.seat: Optional[Seat] = None
        self._req_ids = itertools.count(1)

    async def run(self) -> None:
        async with connect(self.url) as ws:
            self.websocket = ws
            if self.room_code:
                reply = await self._request({"type": "join_room", "roomCode": self.room_code, "playerName": self.name})
            else:
                reply = await self._request({"type": "create_room", "hostName": self.name, "settings": self.settings})
            if reply.get("type") == "error":
                print(f"Error {reply.get('code')}: {reply.get('error')}")
                return
            self.seat = Seat(room_code=reply["roomCode"], player_id=reply["playerId"], is_host=reply["isHost"])
            print(f"Seated in room {self.seat.room_code} (host={self.seat.is_host})")
            print(render_game(reply["game"], self.seat.player_id))
            await self._loop()

    async def _loop(self) -> None:
        assert self.seat is not None
        print(HELP)
        while True:
            line = await asyncio.to_thread(input, "> ")
            if line.strip().lower() in ("quit", "exit"):
                break
            body = parse_command(line)
            if body is None:
                print(HELP)
                continue
            body["roomCode"] = self.seat.room_code
            key = "hostId" if body["type"] in ("new_hand", "update_settings") else "playerId"
            body[key] = self.seat.player_id
            reply = await self._request(body)
            if reply.get("type") == "error":
                print(f"Error {reply.get('code')} ({reply.get('status')}): {reply.get('error')}")
                continue
            for event in reply.get("events", []):
                print(f"Event {event['ev']}: {event}")
            print(render_game(reply["game"], self.seat.player_id))

    async def _request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        assert self.websocket is not None
        payload = {"req_id": next(self._req_ids), **payload}
        await self.websocket.send(json.dumps(payload))
        return json.loads(await self.websocket.recv())


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Card-room terminal client")
    parser.add_argument("--url", default="ws://127.0.0.1:3001")
    parser.add_argument("--name", required=True)
    parser.add_argument("--join", metavar="ROOM_CODE", help="Join an existing room instead of creating one")
    parser.add_argument("--starting-chips", type=int, default=1_000)
    parser.add_argument("--sb", type=int, default=10)
    parser.add_argument("--bb", type=int, default=20)
    parser.add_argument("--max-players", type=int, default=8)
    return parser.parse_args(argv)


def main(argv: list[str]) -> None:
    args = parse_args(argv)
    settings = {
        "startingChips": args.starting_chips,
        "smallBlind": args.sb,
        "bigBlind": args.bb,
        "maxPlayers": args.max_players,
    }
    client = RoomClient(url=args.url, name=args.name, room_code=args.join, settings=settings)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        print("\nSession closed")


if __name__ == "__main__":
    main(sys.argv[1:])
