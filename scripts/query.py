import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to the path to allow imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ai.adapters import Backend, Orchestrator, QueryRequest
from core.errors import AllBackendsExhausted, OrchestratorError

PROVIDER_CHOICES = ["auto"] + [b.value for b in Backend]

def parse_args(argv=None):
    """Parses command-line arguments."""
    parser = argparse.ArgumentParser(description="Send one query through the tiered AI orchestrator.")
    parser.add_argument("message", help="The question to ask.")
    parser.add_argument(
        "--provider",
        choices=PROVIDER_CHOICES,
        default="auto",
        help="Backend to use. 'auto' walks the tier order with retries. Default: auto",
    )
    parser.add_argument("--context", help="Extra grounding text sent with the question.")
    parser.add_argument("--system", help="System prompt for the backend.")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Also print rate-limit status and usage metrics after the query.",
    )
    return parser.parse_args(argv)

async def run(args) -> int:
    request = QueryRequest(
        message=args.message,
        context=args.context,
        system_prompt=args.system,
        preferred_provider=args.provider,
    )
    async with Orchestrator() as orchestrator:
        try:
            response = await orchestrator.query(request)
        except AllBackendsExhausted as e:
            print(json.dumps({"error": str(e), "failures": e.failures}, indent=2), file=sys.stderr)
            return 1
        print(response.model_dump_json(indent=2))
        if args.status:
            status = [
                {
                    "backend": s.backend.value,
                    "available_now": s.available_now,
                    "requests_used_in_window": s.requests_used_in_window,
                    "limit": s.limit,
                }
                for s in orchestrator.get_provider_status()
            ]
            print(json.dumps({"providers": status, "metrics": orchestrator.get_metrics().to_dict()}, indent=2))
    return 0

def main(argv=None) -> int:
    """Main execution function."""
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except OrchestratorError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

if __name__ == "__main__":
    sys.exit(main())
