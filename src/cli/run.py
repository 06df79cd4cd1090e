import argparse
import asyncio
import json
import logging
import time

from core.schemas import CoverageRequest
from ingestion.source_factory import create_coverage_search, create_rss_search
from processing.coverage import fetch_event_coverage
from processing.ranker import rank
from processing.timeline import TimelineGenerator
from services.config import Config, load_config
from services.database import DocumentStore
from services.llm import ChatCompletionClient
from services.logging import setup_logging
from services.settings import DocumentSettingsProvider

logger = logging.getLogger(__name__)


async def run_rank(config: Config, args: argparse.Namespace) -> dict:
    search = create_rss_search(config.search)
    candidates = await search.search(args.topic)
    logger.info(f"Fetched {len(candidates)} candidates for '{args.topic}'")
    return rank(args.topic, args.description, candidates).to_dict()


async def run_timeline(config: Config, args: argparse.Namespace) -> dict:
    llm = ChatCompletionClient(
        base_url=config.sonar.base_url,
        model=config.sonar.model,
        api_key=config.sonar.api_key,
        timeout=config.sonar.timeout,
    )
    settings = await DocumentSettingsProvider(DocumentStore(config.DATABASE_PATH)).get_settings()
    prompts = settings.sonar
    result = await TimelineGenerator(llm).run(
        args.title,
        args.overview,
        prompts.timeline_system_prompt,
        prompts.timeline_user_prompt_template,
        model=prompts.model,
    )
    logger.info(f"Timeline finished in state {result.state.name} after {result.calls} call(s)")
    return {"events": result.events}


async def run_coverage(config: Config, args: argparse.Namespace) -> dict:
    request = CoverageRequest(
        title=args.title,
        event=args.event,
        description=args.description,
        date=args.date,
        region=config.search.region,
        lang=config.search.lang,
    )
    sources = await fetch_event_coverage(create_coverage_search(config.search), request)
    return {"sources": sources}


COMMANDS = {
    "rank": run_rank,
    "timeline": run_timeline,
    "coverage": run_coverage,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Newsroom enrichment tools")
    parser.add_argument("--config", default=None, help="Path to config.yml")
    sub = parser.add_subparsers(dest="command", required=True)

    rank_parser = sub.add_parser("rank", help="Pick the best source preview for a topic")
    rank_parser.add_argument("topic")
    rank_parser.add_argument("--description", default="")

    timeline_parser = sub.add_parser("timeline", help="Generate a sourced timeline")
    timeline_parser.add_argument("title")
    timeline_parser.add_argument("--overview", default=None)

    coverage_parser = sub.add_parser("coverage", help="Search news coverage for one event")
    coverage_parser.add_argument("title")
    coverage_parser.add_argument("--event", default=None)
    coverage_parser.add_argument("--description", default=None)
    coverage_parser.add_argument("--date", default=None)

    return parser


async def main(argv=None) -> None:
    start_time = time.perf_counter()
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.LOG_LEVEL)

    output = await COMMANDS[args.command](config, args)
    print(json.dumps(output, indent=2, ensure_ascii=False))

    end_time = time.perf_counter()
    logger.info(f"Total time: {end_time - start_time}")


if __name__ == "__main__":
    asyncio.run(main())
