import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from sakubun.api.dependencies import build_services
from sakubun.client.bootstrap import build_generation_client, close_generation_client
from sakubun.core.config import Settings
from sakubun.core.exceptions import FeedbackException
from sakubun.models.request import FeedbackRequest, FollowUpRequest
from sakubun.models.response import ErrorResponse


def _read_file(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


async def _amain(args: argparse.Namespace, settings: Settings) -> int:
    client = build_generation_client(settings)
    orchestrator, followup = build_services(settings, client)
    try:
        if args.command == "feedback":
            result = await orchestrator.feedback(
                FeedbackRequest(question=args.question, text=args.text, model_preference=args.model)
            )
        else:
            result = await followup.answer(
                FollowUpRequest(
                    question=args.question,
                    original_question=args.original_question,
                    original_text=args.original_text,
                    feedback=args.feedback,
                    model_preference=args.model,
                )
            )
    except FeedbackException as e:
        result = ErrorResponse(message=e.message)
    finally:
        await close_generation_client(client)

    print(json.dumps(result.model_dump(by_alias=True), ensure_ascii=False, indent=2))
    return 0 if result.status == "success" else 1


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(prog="sakubun", description="Rubric feedback for short English compositions")
    sub = parser.add_subparsers(dest="command", required=True)

    fb = sub.add_parser("feedback", help="Score a composition and print the report")
    group = fb.add_mutually_exclusive_group(required=False)
    group.add_argument("--text", help="Composition text")
    group.add_argument("--file", help="Path to a file containing the composition")
    fb.add_argument("--question", default="", help="Question the composition answers")
    fb.add_argument("--model", default=None, help="'pro' selects the higher-capability model")

    qa = sub.add_parser("qa", help="Ask a follow-up question about earlier feedback")
    qa.add_argument("--question", required=True, help="Follow-up question")
    qa.add_argument("--original-question", default=None)
    qa.add_argument("--original-text-file", default=None, help="File with the composition that was scored")
    qa.add_argument("--feedback-file", default=None, help="File with the feedback report")
    qa.add_argument("--model", default=None)

    args = parser.parse_args(argv)

    try:
        if args.command == "feedback":
            if args.file:
                args.text = _read_file(args.file)
            elif not args.text:
                # Read from stdin
                args.text = sys.stdin.read()
            if not args.text.strip():
                print("No text provided. Use --text, --file, or pipe input.", file=sys.stderr)
                return 2
        else:
            args.original_text = _read_file(args.original_text_file) if args.original_text_file else None
            args.feedback = _read_file(args.feedback_file) if args.feedback_file else None
    except OSError as e:
        print(f"Failed to read file: {e}", file=sys.stderr)
        return 2

    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    return asyncio.run(_amain(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())
