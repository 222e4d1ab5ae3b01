from __future__ import annotations
import asyncio, argparse, sys
from typing import List, Optional
from .bridge import run
from .errors import AdapterUnavailable, BackgroundTaskFailed

def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(description="Mi Band heart-rate broadcast bridge")
    ap.add_argument("--config", required=True)
    args = ap.parse_args(argv)
    try:
        asyncio.run(run(args.config))
    except AdapterUnavailable as e:
        print(f"[err] {e}", file=sys.stderr)
        sys.exit(2)
    except BackgroundTaskFailed as e:
        print(f"[err] {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
