from .log import configure_logging
from .scheduler import run_sweep_once


def run():
    configure_logging()
    result = run_sweep_once()
    print(f"[SWEEP] reconciled={result.reconciled} granted={result.granted} revoked={result.revoked} "
          f"decayed={result.decayed} skipped={result.skipped} failed={len(result.failed)} "
          f"lifecycle_changed={result.lifecycle_changed}")
    return result


if __name__ == "__main__":
    run()
