import logging
from dataclasses import dataclass
from typing import Optional

from core.batch.orchestrator import BatchMatchOrchestrator
from core.batch.telemetry import LoggingTelemetrySink, TelemetrySink
from core.config_loader import AppConfig, LlmConfig
from core.engine import MatchingEngine
from core.learning.weights import LearningWeightEstimator
from core.llm.openai_service import OpenAIService
from core.ranker.service import RecommendationRanker
from core.scorer.service import ScoreCalculator
from database.uow import ScopedApplicationLookup, ScopedHistoryLookup, matching_uow
from notification.channels import NotificationChannel, NotificationChannelFactory
from notification.digest import MatchingDigestService
from notification.message_builder import NotificationMessageBuilder
from notification.service import BackgroundTaskRunner, MatchNotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    DB access is obtained via matching_uow() inside each operation; nothing
    here holds a session.
    """
    config: AppConfig
    telemetry: TelemetrySink
    score_calculator: ScoreCalculator
    orchestrator: BatchMatchOrchestrator
    engine: MatchingEngine
    oracle: Optional[OpenAIService] = None
    dispatcher: Optional[MatchNotificationDispatcher] = None
    digest_service: Optional[MatchingDigestService] = None
    task_runner: Optional[BackgroundTaskRunner] = None

    @classmethod
    def build(
        cls,
        config: AppConfig,
        telemetry: Optional[TelemetrySink] = None,
        configure_database: bool = True,
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            telemetry: Sink shared by orchestrators and dispatchers
            configure_database: Bind the session factory to config.database.url
        """
        if configure_database:
            from database.database import configure_engine
            configure_engine(config.database.url, echo=config.database.echo)

        telemetry = telemetry or LoggingTelemetrySink()

        oracle = cls._build_oracle(config.llm) if config.scoring.use_oracle else None
        score_calculator = ScoreCalculator(oracle=oracle, config=config.scoring)

        orchestrator = cls._build_orchestrator(config, score_calculator, telemetry)
        history_lookup = ScopedHistoryLookup(matching_uow)
        weight_estimator = LearningWeightEstimator(
            history_lookup, default_lookback_days=config.recommendation.lookback_days
        )
        ranker = RecommendationRanker(
            score_calculator, history_repo=history_lookup, history_limit=config.recommendation.history_limit
        )

        dispatcher = None
        digest_service = None
        task_runner = None
        if config.notifications.enabled:
            channel = cls._build_channel(config)
            message_builder = NotificationMessageBuilder(config.notifications.base_url)
            # Own orchestrator: dispatches may run concurrently with batch runs
            dispatcher = MatchNotificationDispatcher(
                orchestrator=cls._build_orchestrator(config, score_calculator, telemetry),
                channel=channel,
                message_builder=message_builder,
                config=config.notifications,
                telemetry=telemetry,
            )
            digest_service = MatchingDigestService(
                channel=channel,
                message_builder=message_builder,
                config=config.digest,
                telemetry=telemetry,
            )
            task_runner = BackgroundTaskRunner(
                use_async_queue=config.notifications.use_async_queue,
                redis_url=config.notifications.redis_url,
                queue_name=config.notifications.queue_name,
                max_workers=config.notifications.background_workers,
                job_timeout=config.notifications.task_timeout,
                telemetry=telemetry,
            )

        engine = MatchingEngine(
            config=config,
            score_calculator=score_calculator,
            orchestrator=orchestrator,
            ranker=ranker,
            weight_estimator=weight_estimator,
            dispatcher=dispatcher,
            digest_service=digest_service,
            task_runner=task_runner,
        )

        return cls(
            config=config,
            telemetry=telemetry,
            score_calculator=score_calculator,
            orchestrator=orchestrator,
            engine=engine,
            oracle=oracle,
            dispatcher=dispatcher,
            digest_service=digest_service,
            task_runner=task_runner,
        )

    @staticmethod
    def _build_oracle(llm_config: LlmConfig) -> Optional[OpenAIService]:
        """OpenAI scoring oracle, or None when no credentials are configured."""
        if not llm_config.api_key and not llm_config.base_url:
            logger.warning("No LLM credentials configured; scoring with the heuristic only")
            return None

        model_config = {
            'scoring_model': llm_config.scoring_model,
            'explanation_model': llm_config.explanation_model,
            'temperature': llm_config.temperature,
        }
        return OpenAIService(
            api_key=llm_config.api_key,
            base_url=llm_config.base_url,
            model_config=model_config,
            timeout_seconds=llm_config.timeout_seconds,
            max_attempts=llm_config.max_attempts,
        )

    @staticmethod
    def _build_orchestrator(
        config: AppConfig, score_calculator: ScoreCalculator, telemetry: TelemetrySink
    ) -> BatchMatchOrchestrator:
        return BatchMatchOrchestrator(
            score_calculator,
            application_lookup=ScopedApplicationLookup(matching_uow),
            telemetry=telemetry,
            batch_size=config.batch.batch_size,
            concurrency_limit=config.batch.concurrency_limit,
            high_quality_score=config.batch.high_quality_score,
        )

    @staticmethod
    def _build_channel(config: AppConfig) -> NotificationChannel:
        notifications = config.notifications
        if notifications.channel == 'email':
            return NotificationChannelFactory.get_channel(
                'email', from_email=notifications.from_email, dry_run=notifications.dry_run
            )
        return NotificationChannelFactory.get_channel(notifications.channel, dry_run=notifications.dry_run)
