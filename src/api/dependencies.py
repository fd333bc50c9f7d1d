"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from fastapi import Depends, HTTPException, Request, status

from src.adapters.festival.http import HttpFestivalApi
from src.adapters.notify.console import RecordingNotifier
from src.adapters.storage.memory import NamespacedStorage
from src.config.settings import Settings, get_settings
from src.domain.ports import FestivalApi, Flow, KeyValueStorage
from src.domain.registration import RegistrationOrchestrator
from src.domain.replication import BestEffortReplicator


def get_storage(request: Request) -> KeyValueStorage:
    """
    Get the progress store from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.storage


def get_festival_api(request: Request) -> HttpFestivalApi:
    """Get the shared festival backend client from app state."""
    return request.app.state.festival_api


def get_replicator(request: Request) -> BestEffortReplicator:
    """Get the shared checkpoint replicator from app state."""
    return request.app.state.replicator


def get_app_settings() -> Settings:
    return get_settings()


def build_orchestrator(
    flow: Flow,
    session_id: str,
    storage: KeyValueStorage,
    api: FestivalApi,
    replicator: BestEffortReplicator,
) -> RegistrationOrchestrator:
    """
    Create the registration orchestrator for one wizard session.

    Progress keys are namespaced by session id so that concurrent sessions
    sharing one store never see each other's progress.
    """
    return RegistrationOrchestrator(
        flow=flow,
        storage=NamespacedStorage(storage, session_id),
        checkpoints=api,
        api=api,
        replicator=replicator,
        notifier=RecordingNotifier(),
    )


def get_orchestrator(
    flow: Flow,
    session_id: str,
    storage: KeyValueStorage = Depends(get_storage),
    api: FestivalApi = Depends(get_festival_api),
    replicator: BestEffortReplicator = Depends(get_replicator),
) -> RegistrationOrchestrator:
    """
    Get the orchestrator of an existing session.

    The session is restored from local storage only; remote reconciliation
    runs on mount.

    Raises:
        HTTPException: 404 if the session was never opened or has expired
    """
    orchestrator = build_orchestrator(flow, session_id, storage, api, replicator)
    if not orchestrator.is_open:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Registration session not found"
        )
    orchestrator.restore()
    return orchestrator
