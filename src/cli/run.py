import argparse
import asyncio
from datetime import datetime
import logging
import sys
import time
from typing import List, Optional

from core.entities import RunStatus
from core.errors import BulletinError
from ingestion.scraper import ScraperAdapter
from processing.summarizer import ClusterSummarizer
from services.config import Config, load_config, require_audio_credentials
from services.database import Database
from services.llm import OllamaClient
from services.logging import setup_logging
from services.storage import ObjectStorage
from services.tts import TTSClient
from workflows.audio_queue import AudioQueueProcessor
from workflows.bulletin import BulletinPipeline

logger = logging.getLogger(__name__)


def _parse_hour(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value}")


async def run_pipeline(config: Config, hour: Optional[datetime]) -> int:
    db = Database(config.DATABASE_PATH)
    await db.init_tables()

    llm = OllamaClient(
        base_url=config.OLLAMA_BASE_URL,
        model=config.OLLAMA_MODEL,
        temperature=config.SUMMARY_TEMPERATURE,
        max_tokens=config.SUMMARY_MAX_TOKENS,
        timeout=config.SUMMARY_TIMEOUT,
        retry_policy=config.retry.policy(),
    )
    source = ScraperAdapter(
        base_url=config.SCRAPER_API_URL,
        timeout=config.SCRAPER_TIMEOUT,
        retry_policy=config.retry.policy(),
    )
    pipeline = BulletinPipeline(
        db=db,
        source=source,
        summarize=ClusterSummarizer(llm=llm, db=db),
        fetch_limit=config.SCRAPER_LIMIT,
        default_threshold=config.DEFAULT_CONFIDENCE_THRESHOLD,
        program_name=config.PROGRAM_NAME,
        max_clusters=config.MAX_SCRIPT_CLUSTERS,
    )

    try:
        outcome = await pipeline.run(hour)
    except BulletinError as e:
        logger.error(f"[FATAL] Pipeline run aborted: {e}")
        return 1

    if outcome.status is RunStatus.CREATED:
        print(f"Broadcast {outcome.broadcast_id} created for {outcome.broadcast_hour.isoformat()}")
    else:
        print(f"No broadcast for {outcome.broadcast_hour.isoformat()}: no valid items")
    return 0


async def run_audio(config: Config, limit: Optional[int]) -> int:
    require_audio_credentials(config)

    db = Database(config.DATABASE_PATH)
    await db.init_tables()

    processor = AudioQueueProcessor(
        db=db,
        tts=TTSClient(
            endpoint=config.TTS_ENDPOINT,
            api_key=config.TTS_API_KEY,
            default_voice=config.TTS_VOICE,
            speed=config.TTS_SPEED,
            timeout=config.TTS_TIMEOUT,
            retry_policy=config.tts_retry.policy(),
        ),
        storage=ObjectStorage(
            bucket=config.STORAGE_BUCKET,
            public_domain=config.STORAGE_PUBLIC_DOMAIN,
            endpoint_url=config.STORAGE_ENDPOINT,
            access_key=config.STORAGE_ACCESS_KEY,
            secret_key=config.STORAGE_SECRET_KEY,
            region=config.STORAGE_REGION,
            timeout=config.STORAGE_TIMEOUT,
            retry_policy=config.retry.policy(),
        ),
        voice=config.TTS_VOICE,
        batch_size=limit or config.AUDIO_BATCH_SIZE,
        key_prefix=config.STORAGE_PREFIX,
    )

    try:
        result = await processor.run()
    except BulletinError as e:
        logger.error(f"[FATAL] Audio queue processing failed: {e}")
        return 1

    print(f"Published {len(result.published)} broadcast(s), {len(result.failed)} failed")
    for broadcast_id, error in result.failed.items():
        print(f"  - broadcast {broadcast_id}: {error}")
    return 0


async def run_status(config: Config) -> int:
    db = Database(config.DATABASE_PATH)
    await db.init_tables()

    broadcasts = await db.get_recent_broadcasts(limit=10)
    items = await db.get_item_counts()
    quality = await db.get_quality_breakdown()
    audio_count = await db.count_audio_artifacts()

    lines: List[str] = ["Recent broadcasts:"]
    if not broadcasts:
        lines.append("  No broadcasts found")
    for b in broadcasts:
        state = "published" if b.is_published else "pending"
        lines.append(
            f"  [{state}] {b.broadcast_hour.isoformat()} id={b.id} items={b.item_count} "
            f"clusters={b.cluster_count} words={b.word_count} ~{b.estimated_duration_seconds}s"
        )

    lines.append("")
    lines.append(
        f"Items: {items['total']} total, {items['processed']} processed, "
        f"{items['unprocessed']} unprocessed"
    )

    total_scored = quality["valid"] + quality["invalid"]
    if total_scored:
        pct = quality["valid"] / total_scored * 100
        lines.append(f"Quality: {quality['valid']} valid ({pct:.1f}%), {quality['invalid']} invalid")
        for category, count in sorted(
            quality["valid_by_category"].items(), key=lambda kv: kv[1], reverse=True
        ):
            lines.append(f"  {category}: {count}")

    lines.append(f"Audio files: {audio_count}")
    print("\n".join(lines))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hourly audio news bulletins")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    pipeline = sub.add_parser("pipeline", help="Generate the broadcast for one hour")
    pipeline.add_argument("--hour", type=_parse_hour, default=None,
                          help="Hour to build (ISO-8601, defaults to the hour in progress)")

    audio = sub.add_parser("audio", help="Convert unpublished broadcasts to audio")
    audio.add_argument("--limit", type=int, default=None, help="Maximum broadcasts per pass")

    sub.add_parser("status", help="Show pipeline status")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    start_time = time.perf_counter()
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_config()

        if args.command == "pipeline":
            code = await run_pipeline(config, args.hour)
        elif args.command == "audio":
            code = await run_audio(config, args.limit)
        else:
            code = await run_status(config)
    except BulletinError as e:
        logger.error(f"[FATAL] {e}")
        return 1

    logger.info(f"Total time: {time.perf_counter() - start_time:.2f}s")
    return code


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
