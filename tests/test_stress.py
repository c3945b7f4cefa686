import asyncio
import random

from lobby.results import Failure, Success

from .helpers import assert_betting_invariants, create_registry, seat_room


def test_concurrent_joins_respect_max_players():
    async def scenario():
        registry = create_registry()
        code, _ = await seat_room(registry, num_players=1, settings={"maxPlayers": 6})
        results = await asyncio.gather(*(registry.join_room(code, f"Rush{idx}") for idx in range(20)))

        accepted = [result for result in results if isinstance(result, Success)]
        rejected = [result for result in results if isinstance(result, Failure)]
        assert len(accepted) == 5
        assert all(result.msg == "Room is full" for result in rejected)
        assert len(registry.get_room(code).members) == 6
        assert len(registry.players) == 6

    asyncio.run(scenario())


def test_many_rooms_play_in_parallel():
    starting_chips = 100

    async def play_room(registry, seed):
        rng = random.Random(seed)
        code, ids = await seat_room(registry, num_players=rng.randint(2, 5))
        await registry.start_new_hand(code, ids[0])
        for _ in range(40):
            state = registry.get_room(code).game_state
            if not state.awaiting_action:
                break
            actor = state.players[state.current_player_index].player_id
            choice = rng.choice(["fold", "call", "raise", "all-in"])
            amount = state.current_bet + rng.randint(1, 20) if choice == "raise" else None
            result = await registry.apply_action(code, actor, choice, amount)
            assert isinstance(result, Success)
            assert_betting_invariants(registry.get_room(code).game_state, starting_chips)
            await asyncio.sleep(0)
        return code

    async def scenario():
        registry = create_registry()
        codes = await asyncio.gather(*(play_room(registry, seed) for seed in range(50)))
        assert len(set(codes)) == 50
        assert registry.room_count() == 50

    asyncio.run(scenario())
