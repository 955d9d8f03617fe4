"""
Main entry point for the Critocracy game engine.
Demonstrates core functionality by playing a seeded game between computer players.
"""

import sys

from critocracy.engine.game_log import GameLog
from critocracy.engine.reducer import replay_from_actions
from critocracy.engine.session import GameSession
from critocracy.engine.utils import print_game_state


def main(seed: int = 7):
    print("Critocracy - Game Engine Demo")
    print("=" * 60)

    session = GameSession()
    log = GameLog()
    session.subscribe(log)

    players = [
        {"name": "Ada", "is_human": False},
        {"name": "Bartholomew", "is_human": False},
        {"name": "Chiamaka", "is_human": False, "role": "Historian"},
        {"name": "Dmitri", "is_human": False},
    ]
    session.new_game(players, seed=seed)
    result = session.setup_game()
    if not result.ok:
        print(f"Setup failed: {result.error}")
        return 1

    print("\n[INITIAL STATE]")
    print_game_state(session.state, session.board)

    # ===== Play until everyone has finished or the turn limit is hit =====
    results = session.play_non_human()
    rejected = [r for r in results if not r.ok]
    if rejected:
        print(f"Engine rejected a bot action: {rejected[0].error}")
        return 1

    print(f"\n[PLAYED {len(results)} ACTIONS]")
    print("\nLast log entries:")
    print(log.formatted(limit=15))

    print("\n[FINAL STATE]")
    print_game_state(session.state, session.board, verbose=True)

    # ===== Event sourcing: the action log reproduces the same final state =====
    first = session.actions[0]
    initial = GameSession(definitions=session.definitions)
    initial.new_game(players, seed=seed)
    replayed, _ = replay_from_actions(
        initial.state,
        session.actions,
        session.definitions.board,
        session.definitions.library,
        session.definitions.roles,
    )
    same = replayed.to_dict() == session.state.to_dict()
    print(f"Replay of {len(session.actions)} actions (starting with {first.type}) matches: {same}")
    return 0 if same else 1


if __name__ == "__main__":
    sys.exit(main(int(sys.argv[1]) if len(sys.argv) > 1 else 7))
