from fastapi import Request

from modules.storage.services.artifact_store import LocalArtifactStore


def get_artifact_store(request: Request) -> LocalArtifactStore:
    return request.app.state.artifact_store
