"""CLI helper for pushing the locally cached player record to the sheet."""

from __future__ import annotations

import sys

from sheetgame_core import GameSync


def _format_state(state) -> str:
    return (
        f"phase={state.phase.value} registered={state.registered} "
        f"offline={state.offline} needs_sync={state.needs_sync}"
    )


def main() -> int:
    game = GameSync()
    if not game.store.configured:
        print("ERROR: SHEETDB_URL is required to sync the local cache", file=sys.stderr)
        return 1

    outcome = game.go_online(game.current_state())

    if not outcome.attempted:
        print("Nothing to sync")
        print(_format_state(outcome.state))
        return 0 if outcome.success else 1

    if outcome.success:
        print("Local record synced")
        print(_format_state(outcome.state))
        return 0

    print(f"ERROR: {outcome.reason}", file=sys.stderr)
    print(_format_state(outcome.state))
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
