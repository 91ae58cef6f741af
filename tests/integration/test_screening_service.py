from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from dependency_injector import providers
from sqlalchemy import update

from autohire.container import create_container
from autohire.core import EligibilityEvaluator, PipelineStateMachine, ReconciliationEngine
from autohire.errors import (
    ConfigurationError,
    NotFoundError,
    RunInProgressError,
    ValidationError,
)
from autohire.notifications import NotificationQueue
from autohire.schemas import EligibilityRuleSet, PipelineStage, RunStatus, RunTicket
from autohire.service import ScreeningService
from autohire.storage import utcnow
from autohire.storage.database import RunRecord
from conftest import RESUME_TEXT, FakeScoringBackend, build_job, seed_applications


class StaticTextProvider:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls = 0

    def extract_text(self, data, mime_type, filename) -> str:
        self.calls += 1
        return self.text


class BlockingBackend(FakeScoringBackend):
    """Holds the cycle in the fetch phase until released."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_ranked_matches(self, context):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().fetch_ranked_matches(context)


@pytest.fixture
def backend() -> FakeScoringBackend:
    return FakeScoringBackend(
        matches=lambda indexed: [
            {"durableId": app_id, "totalScore": 90 - 10 * position}
            for position, app_id in enumerate(indexed)
        ]
    )


def build_service(database, jobs, applications, runs, backend, *, text=RESUME_TEXT, engine_provider=None):
    queue = NotificationQueue()
    executor = ThreadPoolExecutor(max_workers=2)

    def default_engine() -> ReconciliationEngine:
        return ReconciliationEngine(scoring=backend, runs=runs, applications=applications, jobs=jobs)

    service = ScreeningService(
        jobs=jobs,
        applications=applications,
        runs=runs,
        engine_provider=engine_provider or default_engine,
        eligibility=EligibilityEvaluator(),
        pipeline=PipelineStateMachine(applications=applications, jobs=jobs, notifications=queue),
        text_provider=StaticTextProvider(text),
        executor=executor,
        stale_after_minutes=30,
    )
    return service, queue


@pytest.fixture
def service(database, jobs, applications, runs, backend):
    service, _ = build_service(database, jobs, applications, runs, backend)
    yield service
    service.shutdown()


def test_screening_run_scores_every_application(service, jobs, applications, backend):
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 3)

    ticket = service.start_screening_run(job.id)
    finished = service.wait_for_run(ticket.run_id, timeout=5)
    progress = service.get_run_progress(ticket.run_id)

    assert ticket.total == 3
    assert finished.status is RunStatus.COMPLETED
    assert (progress.processed, progress.total, progress.percent, progress.done) == (3, 3, 100, True)
    assert [applications.get(f"app-{n}").score for n in (1, 2, 3)] == [90, 80, 70]
    assert jobs.get(job.id).scoring_context is not None
    assert backend.contexts_created == 1


def test_run_can_be_limited_to_selected_applications(service, jobs, applications):
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 3)

    ticket = service.start_screening_run(job.id, ["app-3"])
    service.wait_for_run(ticket.run_id, timeout=5)

    assert ticket.total == 1
    assert applications.get("app-3").score == 90
    assert applications.get("app-1").score is None


def test_second_run_on_same_job_is_refused(database, jobs, applications, runs):
    backend = BlockingBackend(matches=[{"resumeIndex": 0, "totalScore": 50}])
    service, _ = build_service(database, jobs, applications, runs, backend)
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 2)
    try:
        ticket = service.start_screening_run(job.id)
        assert backend.entered.wait(timeout=5)

        with pytest.raises(RunInProgressError) as excinfo:
            service.start_screening_run(job.id)
        assert excinfo.value.run_id == ticket.run_id
    finally:
        backend.release.set()
        service.shutdown()

    assert runs.get(ticket.run_id).status is RunStatus.COMPLETED


def test_stale_active_run_is_superseded(database, service, jobs, applications, runs):
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 1)
    abandoned = runs.create(job.id, total=1)
    with database.session_factory.begin() as session:
        session.execute(
            update(RunRecord)
            .where(RunRecord.id == abandoned.id)
            .values(updated_at=utcnow() - timedelta(hours=2))
        )

    ticket = service.start_screening_run(job.id)
    service.wait_for_run(ticket.run_id, timeout=5)

    assert runs.get(abandoned.id).status is RunStatus.FAILED
    assert runs.get(ticket.run_id).status is RunStatus.COMPLETED


def test_expire_stale_runs(database, service, runs):
    stale = runs.create("job-x", total=2)
    with database.session_factory.begin() as session:
        session.execute(
            update(RunRecord)
            .where(RunRecord.id == stale.id)
            .values(updated_at=utcnow() - timedelta(hours=1))
        )

    assert [run.id for run in service.find_stale_runs()] == [stale.id]
    assert [run.id for run in service.expire_stale_runs()] == [stale.id]
    assert service.find_stale_runs() == []


def test_missing_scoring_configuration_fails_before_a_run_exists(database, jobs, applications, runs, backend):
    def unconfigured():
        raise ConfigurationError("Scoring service API key is not configured")

    service, _ = build_service(database, jobs, applications, runs, backend, engine_provider=unconfigured)
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 1)
    try:
        with pytest.raises(ConfigurationError):
            service.start_screening_run(job.id)
    finally:
        service.shutdown()

    assert runs.find_active(job.id) is None


def test_run_requires_job_and_applications(service, jobs):
    with pytest.raises(NotFoundError):
        service.start_screening_run("missing-job")

    job = jobs.add(build_job())
    with pytest.raises(NotFoundError):
        service.start_screening_run(job.id)


def test_unknown_run_progress(service):
    with pytest.raises(NotFoundError):
        service.get_run_progress("missing-run")


def test_submit_application_caches_text_once(service, jobs, applications):
    job = jobs.add(build_job())

    application = service.submit_application(
        job_id=job.id,
        candidate_id="cand-1",
        document=b"%PDF",
        mime_type="application/pdf",
        filename="resume.pdf",
        candidate_email="cand@example.com",
    )

    assert application.has_text
    assert application.error is None
    assert application.pipeline_stage is PipelineStage.SCREENING
    assert applications.list_for_screening(job.id)[0].id == application.id


def test_submit_application_records_extraction_error(database, jobs, applications, runs, backend):
    service, _ = build_service(database, jobs, applications, runs, backend, text="")
    job = jobs.add(build_job())
    try:
        application = service.submit_application(
            job_id=job.id,
            candidate_id="cand-1",
            document=b"scanned",
            mime_type="application/pdf",
            filename="scan.pdf",
        )
    finally:
        service.shutdown()

    assert application.has_text is False
    assert application.error == "Resume text is required"


def test_closed_jobs_take_no_applications(service, jobs):
    job = jobs.add(build_job())
    jobs.close(job.id)

    with pytest.raises(ValidationError):
        service.submit_application(
            job_id=job.id,
            candidate_id="cand-1",
            document=b"text",
            mime_type="text/plain",
            filename="cv.txt",
        )
    with pytest.raises(ValidationError):
        jobs.update_eligibility(job.id, EligibilityRuleSet())


def test_withdrawn_applications_leave_the_run(service, jobs, applications):
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 2)

    service.withdraw_application("app-1")
    ticket = service.start_screening_run(job.id)
    service.wait_for_run(ticket.run_id, timeout=5)

    assert ticket.total == 1
    with pytest.raises(NotFoundError):
        applications.get("app-1")


def test_eligibility_through_service(service, jobs):
    job = jobs.add(
        build_job(eligibility={"minExperienceYears": 2, "educationMinLevel": ["bachelors"]})
    )

    accepted = service.evaluate_eligibility(job.id, {"experienceYears": 3, "educationLevel": "masters"})
    refused = service.evaluate_eligibility(job.id, {"experienceYears": 1, "educationLevel": "masters"})

    assert accepted.eligible is True
    assert refused.failed_rules == ["experienceYears"]


def test_stage_operations_through_service(database, jobs, applications, runs, backend):
    service, queue = build_service(database, jobs, applications, runs, backend)
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 3, candidate_email="c@example.com")
    try:
        result = service.advance_stage(["app-1", "app-2"], "assessment")
        rejected = service.reject_applications(["app-3"])
        listed = service.list_by_stage(job.id, "assessment")
    finally:
        service.shutdown()

    assert (result.advanced_count, result.notifications_sent) == (2, 2)
    assert len(queue) == 2
    assert rejected == 1
    assert sorted(item.id for item in listed) == ["app-1", "app-2"]


def wait_until(condition, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent = []

    def send(self, intent) -> None:
        self.sent.append(intent)


def test_container_service_delivers_notifications(tmp_path):
    container = create_container(settings={"database": {"url": f"sqlite:///{tmp_path / 'n.db'}"}})
    notifier = RecordingNotifier()
    container.notifier.override(providers.Object(notifier))
    service = container.service()
    jobs = container.job_repository()
    applications = container.application_repository()
    job = jobs.add(build_job(title="Data Engineer"))
    seed_applications(applications, job.id, 2, candidate_email="c@example.com")
    try:
        result = service.advance_stage(["app-1", "app-2"], "interview")

        assert result.notifications_sent == 2
        assert wait_until(lambda: len(notifier.sent) == 2)
    finally:
        service.shutdown()

    assert sorted(intent.application_id for intent in notifier.sent) == ["app-1", "app-2"]
    assert len(container.notification_queue()) == 0


def test_finished_runs_release_their_tasks(service, jobs, applications):
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 2)

    ticket = service.start_screening_run(job.id)

    assert wait_until(lambda: service.get_run_progress(ticket.run_id).done)
    assert wait_until(lambda: ticket.run_id not in service._tasks)
    assert service.wait_for_run(ticket.run_id).status is RunStatus.COMPLETED


def test_concurrent_starts_allow_a_single_run(database, jobs, applications, runs):
    backend = BlockingBackend(matches=[{"resumeIndex": 0, "totalScore": 50}])
    service, _ = build_service(database, jobs, applications, runs, backend)
    job = jobs.add(build_job())
    seed_applications(applications, job.id, 2)
    barrier = threading.Barrier(2)

    def start():
        barrier.wait(timeout=5)
        try:
            return service.start_screening_run(job.id)
        except RunInProgressError as exc:
            return exc

    try:
        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(lambda _: start(), range(2)))
    finally:
        backend.release.set()
        service.shutdown()

    tickets = [item for item in outcomes if isinstance(item, RunTicket)]
    refusals = [item for item in outcomes if isinstance(item, RunInProgressError)]
    assert len(tickets) == 1
    assert len(refusals) == 1
    assert refusals[0].run_id == tickets[0].run_id
    assert runs.get(tickets[0].run_id).status is RunStatus.COMPLETED
