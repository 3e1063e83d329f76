"""CLI entry point for neural-ai.

One-off generation against any backend, plus a credential check for every
provider.

Entry point:
    neural-ai generate --provider openai [--stream] [--json] "What is 2+2?"
    neural-ai diagnose [--live]
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from neural_ai.adapters.schema import (
    AIProvider,
    GenerationConfig,
    ImagePart,
    NormalizedRequest,
)
from neural_ai.config import (
    DEEPSEEK_API_KEY_ENV,
    GOOGLE_API_KEY_ENV,
    HUGGINGFACE_API_KEY_ENV,
    OPENAI_API_KEY_ENV,
)
from neural_ai.errors import NeuralAIError
from neural_ai.factory import create_model

logger = logging.getLogger(__name__)

# None: backend needs no credential
PROVIDER_KEY_ENVS: dict[AIProvider, Optional[str]] = {
    AIProvider.OPENAI: OPENAI_API_KEY_ENV,
    AIProvider.GOOGLE: GOOGLE_API_KEY_ENV,
    AIProvider.DEEPSEEK: DEEPSEEK_API_KEY_ENV,
    AIProvider.HUGGINGFACE: HUGGINGFACE_API_KEY_ENV,
    AIProvider.OLLAMA: None,
}

DIAGNOSE_PROMPT = "Hello!"
DIAGNOSE_SYSTEM_PROMPT = "Reply with a single word: Hi"


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="neural-ai",
        description="Unified client for OpenAI, Google, DeepSeek, Ollama and HuggingFace models.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command")

    # generate
    gen_p = sub.add_parser("generate", help="Send one prompt to a backend")
    gen_p.add_argument(
        "--provider", "-p", required=True,
        choices=[p.value for p in AIProvider], help="Backend to call",
    )
    gen_p.add_argument("--model", "-m", default=None, help="Model ID (backend default if omitted)")
    gen_p.add_argument("--system", default=None, help="System prompt")
    gen_p.add_argument(
        "--image", action="append", default=[], dest="images",
        help="Image URL or file path (repeatable)",
    )
    gen_p.add_argument("--temperature", type=float, default=None, help="Sampling temperature")
    gen_p.add_argument("--max-tokens", type=int, default=None, help="Maximum tokens to generate")
    gen_p.add_argument("--timeout", type=float, default=None, help="Request timeout (seconds)")
    gen_p.add_argument("--stream", action="store_true", help="Print text as it arrives")
    gen_p.add_argument(
        "--json", action="store_true", dest="json_output",
        help="Print the normalized response as JSON",
    )
    gen_p.add_argument("prompt", help="Prompt text")

    # diagnose
    diag_p = sub.add_parser("diagnose", help="Check credentials for every provider")
    diag_p.add_argument(
        "--live", action="store_true",
        help="Also make a one-word call to each configured provider",
    )

    return parser


def _build_request(args: argparse.Namespace) -> NormalizedRequest:
    options = GenerationConfig(
        model=args.model,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        timeout_seconds=args.timeout,
    )
    content = [ImagePart(source=source) for source in args.images] or None
    return NormalizedRequest(
        prompt=args.prompt,
        system_prompt=args.system,
        content=content,
        options=options,
    )


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_generate(args: argparse.Namespace) -> int:
    """Run one request. Returns exit code."""
    adapter = create_model(args.provider)
    request = _build_request(args)

    try:
        if args.stream:
            async for chunk in adapter.stream(request):
                sys.stdout.write(chunk)
                sys.stdout.flush()
            sys.stdout.write("\n")
            return 0

        response = await adapter.generate(request)
    except NeuralAIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json_output:
        json.dump(response.model_dump(exclude={"raw"}), sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        print(response.text)
        for call in response.function_calls or []:
            print(f"[function call] {call.name}({call.arguments})", file=sys.stderr)

    return 0


async def _diagnose_provider(provider: AIProvider, live: bool) -> bool:
    """Print one provider's status. Returns False if a live call failed."""
    env_var = PROVIDER_KEY_ENVS[provider]
    print(f"{provider.value}:")

    if env_var is None:
        print("  no API key required")
    elif os.environ.get(env_var):
        print(f"  {env_var} is set")
    else:
        print(f"  {env_var} is not set")
        return True

    if not live:
        return True

    adapter = create_model(provider)
    request = NormalizedRequest(prompt=DIAGNOSE_PROMPT, system_prompt=DIAGNOSE_SYSTEM_PROMPT)
    try:
        response = await adapter.generate(request)
    except NeuralAIError as e:
        print(f"  live call failed: {e}")
        if "quota" in str(e).lower():
            print("  the key has exceeded its quota; check billing or use a different key")
        return False

    text = response.text.strip()
    print(f"  live call OK: \"{text[:50]}{'...' if len(text) > 50 else ''}\"")
    return True


async def _cmd_diagnose(live: bool = False) -> int:
    """Check every provider in turn. Returns exit code."""
    ok = True
    for provider in AIProvider:
        ok = await _diagnose_provider(provider, live) and ok
    return 0 if ok else 1


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main(argv: Optional[list[str]] = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    load_dotenv()

    if args.command == "generate":
        code = asyncio.run(_cmd_generate(args))
    elif args.command == "diagnose":
        code = asyncio.run(_cmd_diagnose(live=args.live))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
