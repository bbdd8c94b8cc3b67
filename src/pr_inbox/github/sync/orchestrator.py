"""Sync Orchestrator - reconcile tracked repositories against GitHub.

Repositories are synced concurrently (bounded), pull requests within a
repository by a bounded worker pool. Failures are itemized per repository
or per pull request and never abort the rest of the run.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pr_inbox.attention.flow import parse_flow_rules
from pr_inbox.audit import AuditLog
from pr_inbox.config import Settings, get_settings
from pr_inbox.db.models import ActionResultStatus, ActionType, SyncStatus, SyncTrigger
from pr_inbox.db.repositories import (
    RepositoryRepository,
    SyncRunRepository,
    TrackedRepositoryRepository,
)
from pr_inbox.logging import bind_repo, bind_run, get_logger
from pr_inbox.schemas.github_api import GitHubPullRequest
from pr_inbox.schemas.repository import PullRequestRef, parse_repo_string

from ..exceptions import GitHubClientError, GitHubTimeoutError
from ..retry import with_retry
from .batch import BatchExecutor
from .reconciler import PullRequestReconciler
from .results import ReconcileResult, RepoSyncResult, SyncIssue, SyncRunResult
from .snapshot import PullRequestFetcher

if TYPE_CHECKING:
    from pr_inbox.github.client import GitHubClient

logger = get_logger(__name__)


class RepositoryNotTrackedError(Exception):
    """Raised when refreshing a pull request of a repository nobody tracks."""

    pass


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class SyncOrchestrator:
    """Top-level entry point for sync runs and on-demand refreshes.

    Usage:
        async with GitHubClient() as client:
            orchestrator = SyncOrchestrator(client, get_session_factory())

            result = await orchestrator.run_sync(SyncTrigger.POLL)
            print(result.status, result.upserted_count, result.error_count)

            await orchestrator.sync_single_pull_request(
                PullRequestRef(full_name="octo/widgets", number=42)
            )
    """

    def __init__(
        self,
        client: GitHubClient,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        *,
        fetcher: PullRequestFetcher | None = None,
        reconciler: PullRequestReconciler | None = None,
        audit: AuditLog | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: GitHub API client
            session_factory: Factory for per-operation sessions
            settings: Settings (defaults to get_settings())
            fetcher: Snapshot fetcher (built from client when omitted)
            reconciler: Reconciler (built from settings when omitted)
            audit: Audit log (built from session_factory when omitted)
            clock: Current UTC time source
        """
        self._client = client
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._config = self._settings.sync
        self._clock = clock or (lambda: datetime.now(UTC))
        self._fetcher = fetcher or PullRequestFetcher(client, self._config)
        self._reconciler = reconciler or PullRequestReconciler(
            session_factory,
            flow_rules=parse_flow_rules(self._settings.flow_rules),
            weights=self._settings.scoring,
            clock=self._clock,
        )
        self._audit = audit or AuditLog(session_factory, clock=self._clock)

    # -------------------------------------------------------------------------
    # Full sync
    # -------------------------------------------------------------------------

    async def run_sync(
        self,
        trigger: SyncTrigger = SyncTrigger.POLL,
        user: str | None = None,
    ) -> SyncRunResult:
        """Reconcile every repository in scope.

        Args:
            trigger: POLL for scheduled runs, MANUAL for user-initiated ones
            user: Restrict to this user's trackings; None means every
                distinct tracked repository

        Returns:
            SyncRunResult with per-repository results and itemized errors

        Raises:
            Exception: Failures outside any single repository, after the run
                is recorded as FAILED
        """
        viewer_login = await self.resolve_viewer_login()

        result = SyncRunResult(
            run_id=uuid.uuid4().hex,
            trigger=trigger,
            started_at=self._clock(),
            viewer_login=viewer_login,
        )
        log = bind_run(result.run_id)

        full_names: list[str] = []
        scope_error: Exception | None = None
        try:
            full_names = await self._resolve_repositories(user)
        except Exception as e:
            scope_error = e

        async with self._session_factory() as session, session.begin():
            await SyncRunRepository(session).start(
                result.run_id,
                trigger,
                result.started_at,
                user_id=user,
                viewer_login=viewer_login,
                tracked_repos=full_names,
            )

        if scope_error is not None:
            log.opt(exception=scope_error).error("Could not resolve repositories in scope")
            result.setup_errors.append(
                SyncIssue(repository="*", message=_error_message(scope_error))
            )
            await self._finish(result, SyncStatus.FAILED)
            raise scope_error

        log.info(
            "Starting {} sync of {} repositories (viewer={})",
            trigger.value,
            len(full_names),
            viewer_login or "unknown",
        )

        try:
            executor: BatchExecutor[str, RepoSyncResult] = BatchExecutor(
                self._config.max_concurrent_repositories
            )
            batch = await executor.execute(
                full_names, lambda name: self._sync_repository(name, viewer_login)
            )
            result.repo_results.extend(batch.succeeded)
            for index, error in batch.failed:
                log.opt(exception=error).error("Failed to sync {}", full_names[index])
                result.repo_results.append(
                    RepoSyncResult(
                        repository=full_names[index],
                        errors=[
                            SyncIssue(repository=full_names[index], message=_error_message(error))
                        ],
                    )
                )
        except Exception as e:
            log.exception("Sync run failed unexpectedly")
            result.setup_errors.append(SyncIssue(repository="*", message=_error_message(e)))
            await self._finish(result, SyncStatus.FAILED)
            raise

        await self._finish(result, result.resolve_status())

        log.info(
            "Sync complete: status={}, repos={}, pulled={}, upserted={}, errors={} ({:.1f}s)",
            result.status.value,
            len(result.repo_results),
            result.pulled_count,
            result.upserted_count,
            result.error_count,
            result.duration_seconds,
        )
        return result

    async def resolve_viewer_login(self) -> str | None:
        """Login of the token's user, or None when it can't be determined."""
        try:
            return await self._client.get_viewer_login()
        except GitHubClientError as e:
            logger.warning("Could not resolve viewer login: {}", e)
            return None

    async def _resolve_repositories(self, user: str | None) -> list[str]:
        async with self._session_factory() as session:
            tracked = TrackedRepositoryRepository(session)
            if user is None:
                return await tracked.list_distinct_full_names()
            return [t.full_name for t in await tracked.list_for_user(user)]

    async def _finish(self, result: SyncRunResult, status: SyncStatus) -> None:
        result.status = status
        result.finished_at = self._clock()
        errors = [e.to_dict() for e in result.errors]

        async with self._session_factory() as session, session.begin():
            await SyncRunRepository(session).finish(
                result.run_id,
                status,
                result.finished_at,
                pulled_count=result.pulled_count,
                upserted_count=result.upserted_count,
                errors=errors,
            )

        action_type = (
            ActionType.SYNC_MANUAL if result.trigger == SyncTrigger.MANUAL else ActionType.SYNC_POLL
        )
        await self._audit.record(
            action_type,
            ActionResultStatus.FAILED if status == SyncStatus.FAILED else ActionResultStatus.SUCCESS,
            "*",
            actor_login=result.viewer_login,
            payload={
                "run_id": result.run_id,
                "status": status.value,
                "pulled": result.pulled_count,
                "upserted": result.upserted_count,
                "errors": len(errors),
            },
            error_message=errors[0]["message"] if status == SyncStatus.FAILED and errors else None,
        )

    # -------------------------------------------------------------------------
    # Per repository
    # -------------------------------------------------------------------------

    async def _sync_repository(self, full_name: str, viewer_login: str | None) -> RepoSyncResult:
        """Sync one repository; every failure ends up in the result's errors."""
        result = RepoSyncResult(repository=full_name)
        log = bind_repo(full_name)

        try:
            owner, name = parse_repo_string(full_name)
            repository_id = await self._ensure_repository(owner, name)
            pulls = await self._list_pull_requests(owner, name)
        except Exception as e:
            log.exception("Failed to sync {}", full_name)
            result.errors.append(SyncIssue(repository=full_name, message=_error_message(e)))
            return result

        result.pulled = len(pulls)

        async def process(pr: GitHubPullRequest) -> ReconcileResult:
            snapshot = await self._fetcher.fetch(owner, name, pr.number, viewer_login=viewer_login)
            return await self._reconciler.reconcile(repository_id, snapshot, viewer_login)

        executor: BatchExecutor[GitHubPullRequest, ReconcileResult] = BatchExecutor(
            self._config.max_concurrent_pull_requests
        )
        batch = await executor.execute(pulls, process)

        for reconciled in batch.succeeded:
            if reconciled.created:
                result.created += 1
            else:
                result.updated += 1
        for index, error in batch.failed:
            number = pulls[index].number
            log.warning("PR #{} failed: {}", number, error)
            result.errors.append(
                SyncIssue(repository=full_name, pull_number=number, message=_error_message(error))
            )

        try:
            async with self._session_factory() as session, session.begin():
                await RepositoryRepository(session).update_last_synced(
                    repository_id, self._clock()
                )
        except Exception as e:
            log.warning("Could not record sync time for {}: {}", full_name, e)
            result.errors.append(SyncIssue(repository=full_name, message=_error_message(e)))

        log.info(
            "Synced {}: pulled={}, created={}, updated={}, errors={}",
            full_name,
            result.pulled,
            result.created,
            result.updated,
            len(result.errors),
        )
        return result

    async def _ensure_repository(self, owner: str, name: str) -> int:
        """Get-or-create the repository row and link trackings to it."""
        full_name = f"{owner}/{name}"
        remote = await with_retry(
            lambda: self._client.get_repository(owner, name),
            self._config,
            label=f"GET {full_name}",
        )
        async with self._session_factory() as session, session.begin():
            repository, created = await RepositoryRepository(session).get_or_create(
                full_name,
                github_id=remote.id,
                default_branch=remote.default_branch,
            )
            await TrackedRepositoryRepository(session).link_repository(full_name, repository.id)
            if created:
                logger.info("Created repository record: {}", full_name)
            return repository.id

    async def _list_pull_requests(self, owner: str, name: str) -> list[GitHubPullRequest]:
        """Open PRs, plus closed ones updated within the configured window."""
        pulls = await self._list_pages(owner, name, "open")

        window = self._config.closed_window
        if window is not None:
            cutoff = self._clock() - window
            seen = {pr.number for pr in pulls}
            for pr in await self._list_pages(owner, name, "closed", updated_since=cutoff):
                if pr.number not in seen:
                    seen.add(pr.number)
                    pulls.append(pr)

        return pulls

    async def _list_pages(
        self,
        owner: str,
        name: str,
        state: str,
        *,
        updated_since: datetime | None = None,
    ) -> list[GitHubPullRequest]:
        per_page = self._config.per_page
        pulls: list[GitHubPullRequest] = []

        for page in range(1, self._config.max_pages + 1):
            items = await with_retry(
                lambda page=page: self._client.list_pull_requests_page(
                    owner,
                    name,
                    page,
                    state=state,
                    sort="updated",
                    direction="desc",
                    per_page=per_page,
                ),
                self._config,
                label=f"list {state} PRs {owner}/{name} page {page}",
            )

            if updated_since is not None:
                fresh = [pr for pr in items if pr.updated_at >= updated_since]
                pulls.extend(fresh)
                if len(fresh) < len(items):
                    break
            else:
                pulls.extend(items)

            if len(items) < per_page:
                break
        else:
            logger.warning(
                "Stopped listing {} PRs for {}/{} after {} pages",
                state,
                owner,
                name,
                self._config.max_pages,
            )

        return pulls

    # -------------------------------------------------------------------------
    # Single pull request
    # -------------------------------------------------------------------------

    async def sync_single_pull_request(
        self,
        ref: PullRequestRef,
        user: str | None = None,
    ) -> ReconcileResult:
        """Refresh one pull request of a tracked repository.

        Args:
            ref: Repository and PR number
            user: Require the repository to be tracked by this user

        Returns:
            ReconcileResult

        Raises:
            RepositoryNotTrackedError: If the repository isn't tracked
            GitHubTimeoutError: If the refresh exceeds its time budget
            GitHubClientError: If GitHub rejects the request
            Exception: Reconcile or store failures propagate after being audited
        """
        timeout = self._config.single_refresh_timeout_seconds
        log = bind_repo(ref.full_name)

        async with self._session_factory() as session, session.begin():
            if not await TrackedRepositoryRepository(session).is_tracked(ref.full_name, user):
                raise RepositoryNotTrackedError(f"{ref.full_name} is not tracked")
            repository, _ = await RepositoryRepository(session).get_or_create(ref.full_name)
            await TrackedRepositoryRepository(session).link_repository(
                ref.full_name, repository.id
            )
            repository_id = repository.id

        viewer_login = await self.resolve_viewer_login()

        try:
            snapshot = await asyncio.wait_for(
                self._fetcher.fetch(ref.owner, ref.name, ref.number, viewer_login=viewer_login),
                timeout=timeout,
            )
            reconciled = await self._reconciler.reconcile(repository_id, snapshot, viewer_login)
        except TimeoutError as e:
            message = f"Refreshing {ref} exceeded {timeout:g}s"
            log.warning(message)
            await self._audit.record(
                ActionType.SYNC_SINGLE,
                ActionResultStatus.FAILED,
                ref.full_name,
                pull_number=ref.number,
                actor_login=viewer_login,
                error_message=message,
            )
            raise GitHubTimeoutError(message) from e
        except Exception as e:
            if not isinstance(e, GitHubClientError):
                log.exception("Refreshing {} failed", ref)
            await self._audit.record(
                ActionType.SYNC_SINGLE,
                ActionResultStatus.FAILED,
                ref.full_name,
                pull_number=ref.number,
                actor_login=viewer_login,
                error_message=_error_message(e),
            )
            raise

        await self._audit.record(
            ActionType.SYNC_SINGLE,
            ActionResultStatus.SUCCESS,
            ref.full_name,
            pull_number=ref.number,
            actor_login=viewer_login,
            payload=reconciled.to_dict(),
        )
        log.info("Refreshed {}: {}", ref, reconciled.action)
        return reconciled
