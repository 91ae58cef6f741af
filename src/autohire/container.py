"""Dependency injection container for the screening system."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

from dependency_injector import containers, providers

from .core import EligibilityEvaluator, PipelineStateMachine, ReconciliationEngine
from .documents import ResumeTextExtractor
from .notifications import LoggingNotifier, NotificationQueue, NotificationWorker
from .schemas.config import AppConfig, load_config
from .scoring import HTTPScoringClient
from .service import ScreeningService
from .storage import ApplicationRepository, JobRepository, RunTracker, init_database


class ScreeningContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    database = providers.Singleton(
        init_database,
        config.database.url,
        echo=config.database.echo,
    )

    job_repository = providers.Singleton(JobRepository, database=database)
    application_repository = providers.Singleton(ApplicationRepository, database=database)
    run_tracker = providers.Singleton(RunTracker, database=database)

    scoring_client = providers.Singleton(
        HTTPScoringClient,
        base_url=config.scoring.base_url,
        api_key=config.scoring.api_key,
        timeout=config.scoring.timeout,
    )

    text_extractor = providers.Singleton(ResumeTextExtractor)

    notification_queue = providers.Singleton(NotificationQueue)
    notifier = providers.Singleton(LoggingNotifier)
    notification_worker = providers.Singleton(
        NotificationWorker,
        notification_queue,
        notifier,
    )

    eligibility_evaluator = providers.Singleton(EligibilityEvaluator)

    pipeline = providers.Singleton(
        PipelineStateMachine,
        applications=application_repository,
        jobs=job_repository,
        notifications=notification_queue,
    )

    reconciliation_engine = providers.Singleton(
        ReconciliationEngine,
        scoring=scoring_client,
        runs=run_tracker,
        applications=application_repository,
        jobs=job_repository,
        progress_every=config.reconciliation.progress_every,
    )

    executor = providers.Singleton(
        ThreadPoolExecutor,
        max_workers=config.runs.max_workers,
        thread_name_prefix="screening-run",
    )

    service = providers.Singleton(
        ScreeningService,
        jobs=job_repository,
        applications=application_repository,
        runs=run_tracker,
        engine_provider=reconciliation_engine.provider,
        eligibility=eligibility_evaluator,
        pipeline=pipeline,
        text_provider=text_extractor,
        executor=executor,
        stale_after_minutes=config.runs.stale_after_minutes,
        notification_worker=notification_worker,
    )


def create_container(*, settings: dict[str, Any] | AppConfig | None = None) -> ScreeningContainer:
    """Instantiate container with validated settings (defaults when omitted)."""

    app_config = settings if isinstance(settings, AppConfig) else load_config(settings)
    container = ScreeningContainer()
    container.config.from_dict(app_config.to_settings())
    return container
