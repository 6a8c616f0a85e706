#!/usr/bin/env python3
import argparse
import asyncio
import logging
import os
import signal
import sqlite3
import sys
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pytz
from dotenv import load_dotenv

from techmaster.pipeline.content_assembler import ContentAssembler
from techmaster.pipeline.delivery import DeliveryDriver, DeliveryReport
from techmaster.pipeline.email_compiler import EmailCompiler
from techmaster.services.ai_service import AIService
from techmaster.services.content_pools import ContentPools
from techmaster.services.email_service import EmailConfig, EmailService
from techmaster.services.news_service import NewsService
from techmaster.services.prompt_builder import PromptBuilder
from techmaster.services.subscriber_store import SubscriberStore, SubscriberStoreError
from techmaster.utils.error_monitoring import ErrorMonitor
from techmaster.utils.logging_config import PerformanceTracker, setup_logging


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ConfigurationError(Exception):
    """Invalid configuration value"""
    pass


class MissingConfigurationError(ConfigurationError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required configuration: {', '.join(self.missing)}")


class PipelineError(Exception):
    """Custom exception for pipeline failures"""
    pass


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def parse_send_time(value: str) -> time:
    """Parse ``HH:MM`` (24-hour clock)."""
    try:
        hour, minute = value.strip().split(":")
        return time(int(hour), int(minute))
    except ValueError as e:
        raise ConfigurationError(f"SEND_TIME must look like HH:MM, got {value!r}") from e


def parse_weekday(value: str) -> int:
    """Monday is 0. Accepts a day name, a three-letter prefix, or 0-6."""
    text = value.strip().lower()
    if text.isdigit() and 0 <= int(text) <= 6:
        return int(text)
    for index, name in enumerate(WEEKDAYS):
        if text == name or (len(text) >= 3 and name.startswith(text)):
            return index
    raise ConfigurationError(f"SEND_WEEKDAY must be a day name or 0-6, got {value!r}")


@dataclass
class PipelineConfig:
    """Pipeline configuration"""
    # API Keys
    news_api_key: str = ""
    openrouter_api_key: str = ""
    openrouter_model: str = AIService.DEFAULT_MODEL
    ai_max_tokens: int = 2227
    ai_temperature: float = 0.8

    # Email settings
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    smtp_use_tls: bool = True

    # Timing
    timezone: str = "America/New_York"
    send_time: time = time(8, 0)
    send_weekday: int = 0
    max_execution_minutes: int = 20

    # Paths
    database_path: str = "data/subscribers.db"
    log_dir: str = "logs"
    log_level: str = "INFO"

    # Features
    dry_run: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """Build from environment variables. Call ``load_dotenv()`` first to pick up ``.env``."""
        env = os.environ if env is None else env
        return cls(
            news_api_key=env.get("NEWS_API_KEY", ""),
            openrouter_api_key=env.get("OPENROUTER_API_KEY", ""),
            openrouter_model=env.get("OPENROUTER_MODEL") or AIService.DEFAULT_MODEL,
            ai_max_tokens=_env_number(env, "AI_MAX_TOKENS", 2227, int),
            ai_temperature=_env_number(env, "AI_TEMPERATURE", 0.8, float),
            smtp_host=env.get("SMTP_HOST") or "smtp.gmail.com",
            smtp_port=_env_number(env, "SMTP_PORT", 587, int),
            smtp_user=env.get("SMTP_USER", ""),
            smtp_password=env.get("SMTP_PASSWORD", ""),
            from_email=env.get("FROM_EMAIL", ""),
            smtp_use_tls=_env_bool(env.get("SMTP_USE_TLS"), True),
            timezone=env.get("TIMEZONE") or "America/New_York",
            send_time=parse_send_time(env.get("SEND_TIME") or "08:00"),
            send_weekday=parse_weekday(env.get("SEND_WEEKDAY") or "monday"),
            max_execution_minutes=_env_number(env, "MAX_EXECUTION_MINUTES", 20, int),
            database_path=env.get("DATABASE_PATH") or "data/subscribers.db",
            log_dir=env.get("LOG_DIR") or "logs",
            log_level=env.get("LOG_LEVEL") or "INFO",
            dry_run=_env_bool(env.get("DRY_RUN"), False),
        )

    @property
    def sender_email(self) -> str:
        return self.from_email or self.smtp_user

    def validate(self) -> None:
        """Fail fast, naming every missing key at once."""
        missing = []
        if not self.news_api_key:
            missing.append("NEWS_API_KEY")
        if not self.openrouter_api_key:
            missing.append("OPENROUTER_API_KEY")
        if not self.dry_run:
            if not self.smtp_user:
                missing.append("SMTP_USER")
            if not self.smtp_password:
                missing.append("SMTP_PASSWORD")
        if missing:
            raise MissingConfigurationError(missing)
        try:
            pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigurationError(f"Unknown TIMEZONE {self.timezone!r}") from e


@dataclass
class PipelineMetrics:
    """Execution metrics"""
    start_time: datetime
    end_time: Optional[datetime] = None

    # Stage timings (ms)
    assemble_time: float = 0.0
    deliver_time: float = 0.0

    # Counts
    news_items: int = 0
    sections_backfilled: List[str] = field(default_factory=list)
    recipients: int = 0
    delivered: int = 0
    failed: int = 0

    content_outcome: Optional[str] = None
    dry_run: bool = False
    error_statistics: Dict[str, Any] = field(default_factory=dict)

    def total_time(self) -> float:
        """Calculate total execution time"""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0


class NewsletterPipeline:
    """
    Main orchestrator for the weekly newsletter.
    """

    def __init__(self, config: PipelineConfig, services: Optional[Dict[str, Any]] = None):
        self.config = config
        self.metrics: Optional[PipelineMetrics] = None
        self.services: Dict[str, Any] = dict(services or {})
        self.logger = logging.getLogger(__name__)
        self.tz = pytz.timezone(config.timezone)
        self.shutdown_event = asyncio.Event()

    async def initialize_services(self) -> Dict[str, Any]:
        """
        Initialize all required services.
        """
        cfg = self.config
        cfg.validate()

        monitor = ErrorMonitor()
        news = NewsService(api_key=cfg.news_api_key, timezone=cfg.timezone, error_monitor=monitor)
        ai = AIService(
            api_key=cfg.openrouter_api_key,
            model=cfg.openrouter_model,
            max_tokens=cfg.ai_max_tokens,
            temperature=cfg.ai_temperature,
        )
        prompt_builder = PromptBuilder()
        assembler = ContentAssembler(news, ai, prompt_builder, pools=ContentPools(), error_monitor=monitor)
        compiler = EmailCompiler(timezone=cfg.timezone)

        email: Optional[EmailService] = None
        if cfg.smtp_password:
            email = EmailService(EmailConfig(
                smtp_host=cfg.smtp_host,
                smtp_port=cfg.smtp_port,
                smtp_user=cfg.smtp_user,
                smtp_password=cfg.smtp_password,
                from_email=cfg.sender_email,
                use_tls=cfg.smtp_use_tls,
            ))
        delivery = DeliveryDriver(compiler, email, from_email=cfg.sender_email, dry_run=cfg.dry_run)

        subscribers = SubscriberStore(db_path=cfg.database_path, timezone=cfg.timezone)
        await subscribers.initialize_db()

        # Injected services win over the defaults built here
        built = {
            'monitor': monitor,
            'news': news,
            'ai': ai,
            'prompt_builder': prompt_builder,
            'assembler': assembler,
            'compiler': compiler,
            'email': email,
            'delivery': delivery,
            'subscribers': subscribers,
        }
        built.update(self.services)
        self.services = built
        return self.services

    async def run_once(self) -> bool:
        """
        Execute one complete newsletter run. True when every recipient was reached.
        """
        self.metrics = PipelineMetrics(start_time=datetime.now(self.tz), dry_run=self.config.dry_run)
        try:
            await asyncio.wait_for(self._execute_pipeline(), timeout=self.config.max_execution_minutes * 60)
        except asyncio.TimeoutError:
            self.logger.error("Pipeline exceeded %d minutes and was cancelled", self.config.max_execution_minutes)
            return False
        finally:
            self.metrics.end_time = datetime.now(self.tz)
            monitor = self.services.get('monitor')
            if monitor is not None:
                self.metrics.error_statistics = monitor.get_error_statistics()
            self._log_summary()
        return self.metrics.failed == 0

    async def _execute_pipeline(self) -> DeliveryReport:
        if not self.services.get('assembler'):
            await self.initialize_services()
        if self.services.get('monitor') is not None:
            self.services['monitor'].clear()

        content = await self._assemble()

        try:
            subscribers = await self.services['subscribers'].list_subscribers()
        except sqlite3.Error as e:
            raise PipelineError(f"Could not load subscribers: {e}") from e
        self.metrics.recipients = len(subscribers)
        if not subscribers:
            self.logger.warning("No subscribers found; nothing to send")

        with PerformanceTracker("deliver", self.logger) as tracker:
            report = await self.services['delivery'].deliver(content, subscribers, date=datetime.now(self.tz))
        self.metrics.deliver_time = tracker.duration_ms
        self.metrics.delivered = report.delivered
        self.metrics.failed = report.failed_count
        return report

    async def _assemble(self):
        assembler: ContentAssembler = self.services['assembler']
        with PerformanceTracker("assemble", self.logger) as tracker:
            content = await assembler.assemble()
        self.metrics.assemble_time = tracker.duration_ms
        self.metrics.content_outcome = assembler.last_outcome
        self.metrics.sections_backfilled = list(assembler.last_backfilled)
        self.metrics.news_items = len(content.real_news)
        return content

    async def preview(self, path: str) -> Path:
        """Assemble and render one issue to ``path`` without sending anything."""
        if not self.services.get('assembler'):
            await self.initialize_services()
        self.metrics = PipelineMetrics(start_time=datetime.now(self.tz), dry_run=True)

        content = await self._assemble()
        html = self.services['compiler'].render(content, date=datetime.now(self.tz))

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(html, encoding='utf-8')
        self.metrics.end_time = datetime.now(self.tz)
        self.logger.info("Preview written to %s (%d chars)", target, len(html))
        return target

    def _log_summary(self) -> None:
        m = self.metrics
        if m is None:
            return
        self.logger.info(
            "Run summary: outcome=%s news=%d backfilled=%s recipients=%d delivered=%d failed=%d total=%.1fs%s",
            m.content_outcome,
            m.news_items,
            ",".join(m.sections_backfilled) or "-",
            m.recipients,
            m.delivered,
            m.failed,
            m.total_time(),
            " (dry run)" if m.dry_run else "",
        )
        if m.error_statistics.get('total_errors'):
            self.logger.info("Stages with errors: %s", ", ".join(m.error_statistics.get('stages_failed', [])))

    async def close(self) -> None:
        for name in ('news', 'ai'):
            svc = self.services.get(name)
            if svc is not None and hasattr(svc, 'close_session'):
                await svc.close_session()

    def _handle_shutdown(self, signum, frame) -> None:  # noqa: ANN001
        self.logger.info("Received signal %s, shutting down", signum)
        self.shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        try:
            signal.signal(signal.SIGINT, self._handle_shutdown)
            signal.signal(signal.SIGTERM, self._handle_shutdown)
        except ValueError:
            # Not the main thread
            self.logger.debug("Signal handlers not installed")

    async def schedule_weekly_execution(self) -> None:
        self._install_signal_handlers()
        while not self.shutdown_event.is_set():
            await self._wait_until_execution_time()
            if self.shutdown_event.is_set():
                break
            # Run pipeline as background task so we can cancel on shutdown
            pipeline_task = asyncio.create_task(self.run_once())
            shutdown_wait = asyncio.create_task(self.shutdown_event.wait())
            try:
                done, _ = await asyncio.wait({pipeline_task, shutdown_wait}, return_when=asyncio.FIRST_COMPLETED)
                if shutdown_wait in done and not pipeline_task.done():
                    pipeline_task.cancel()
                    await asyncio.gather(pipeline_task, return_exceptions=True)
                    break
                if pipeline_task in done and pipeline_task.exception() is not None:
                    error = pipeline_task.exception()
                    self.logger.error("Scheduled run failed: %s", error, exc_info=error)
            finally:
                for t in (pipeline_task, shutdown_wait):
                    if not t.done():
                        t.cancel()
                await asyncio.gather(pipeline_task, shutdown_wait, return_exceptions=True)
            # Avoid tight loop before scheduling next run
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=60)
            except asyncio.TimeoutError:
                pass

    async def _wait_until_execution_time(self) -> None:
        next_run = self.calculate_next_run_time()
        self.logger.info("Next issue scheduled for %s", next_run.isoformat())
        while not self.shutdown_event.is_set():
            delay = (next_run - datetime.now(self.tz)).total_seconds()
            if delay <= 0:
                break
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=min(delay, 60.0))
            except asyncio.TimeoutError:
                continue

    def calculate_next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """Next configured weekday and time strictly after ``now``."""
        now = now.astimezone(self.tz) if now else datetime.now(self.tz)
        days_ahead = (self.config.send_weekday - now.weekday()) % 7
        run_date = now.date() + timedelta(days=days_ahead)
        next_run = self.tz.localize(datetime.combine(run_date, self.config.send_time))
        if next_run <= now:
            next_run = self.tz.localize(datetime.combine(run_date + timedelta(days=7), self.config.send_time))
        return next_run

    def get_metrics(self) -> Optional[PipelineMetrics]:
        return self.metrics

    async def health_check(self) -> Dict[str, bool]:
        if not self.services.get('assembler'):
            await self.initialize_services()
        results: Dict[str, bool] = {}
        for name in ['ai', 'email']:
            svc = self.services.get(name)
            ok = False
            if svc is not None:
                try:
                    ok = bool(await svc.test_connection())
                except Exception as e:  # noqa: BLE001
                    self.logger.error("Health check for %s raised: %s", name, e)
                    ok = False
            results[name] = ok
        try:
            await self.services['subscribers'].count_subscribers()
            results['subscribers'] = True
        except Exception as e:  # noqa: BLE001
            self.logger.error("Subscriber store health check failed: %s", e)
            results['subscribers'] = False
        return results


async def handle_subscriber_commands(args, config: PipelineConfig) -> int:
    """Handle --subscribe / --subscriber-count"""
    store = SubscriberStore(db_path=config.database_path, timezone=config.timezone)
    await store.initialize_db()
    if args.subscribe:
        try:
            subscriber = await store.add_subscriber(args.subscribe)
        except SubscriberStoreError as e:
            print(f"❌ {e}")
            return 1
        print(f"🎉 Successfully subscribed {subscriber.email}! Welcome to TechMaster Weekly!")
    if args.subscriber_count:
        print(f"📈 Subscriber count: {await store.count_subscribers()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="techmaster", description="TechMaster Weekly newsletter pipeline")
    parser.add_argument('--once', action='store_true', help='Run once immediately')
    parser.add_argument('--dry-run', action='store_true', help='Assemble and render without sending')
    parser.add_argument('--preview', metavar='PATH', help='Write the rendered issue to PATH without sending')
    parser.add_argument('--health', action='store_true', help='Health check only')
    parser.add_argument('--subscribe', metavar='EMAIL', help='Add a subscriber')
    parser.add_argument('--subscriber-count', action='store_true', help='Show the number of subscribers')
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    load_dotenv()
    try:
        config = PipelineConfig.from_env()
    except ConfigurationError as e:
        print(f"❌ {e}")
        return 2
    if args.dry_run or args.preview:
        config.dry_run = True

    setup_logging(config.log_level, config.log_dir)

    if args.subscribe or args.subscriber_count:
        return await handle_subscriber_commands(args, config)

    try:
        config.validate()
    except ConfigurationError as e:
        print(f"❌ {e}")
        return 2

    pipeline = NewsletterPipeline(config)
    try:
        if args.health:
            health = await pipeline.health_check()
            print("Service Health Status:")
            for service, status in health.items():
                print(f"  {service}: {'✅' if status else '❌'}")
            return 0 if all(health.values()) else 1
        if args.preview:
            target = await pipeline.preview(args.preview)
            print(f"✅ Preview written to {target}")
            return 0
        if args.once or args.dry_run:
            print("Running pipeline once...")
            success = await pipeline.run_once()
            metrics = pipeline.get_metrics()
            if metrics:
                print(f"Total time: {metrics.total_time():.2f}s")
                print(f"Delivered: {metrics.delivered}, failed: {metrics.failed}")
            print("✅ Pipeline completed successfully!" if success else "❌ Pipeline finished with failures!")
            return 0 if success else 1

        weekday = WEEKDAYS[config.send_weekday].capitalize()
        print(f"Starting weekly scheduler: every {weekday} at {config.send_time:%H:%M} {config.timezone}")
        await pipeline.schedule_weekly_execution()
        return 0
    except KeyboardInterrupt:
        print("\n⚠️ Shutting down gracefully...")
        return 0
    except Exception as e:  # noqa: BLE001
        print(f"❌ Fatal error: {e}")
        logging.exception("Fatal error in main")
        return 1
    finally:
        await pipeline.close()


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
