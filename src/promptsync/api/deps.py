"""FastAPI dependencies: current-user resolution and coordinator lookup.

Coordinators are built once in create_app() and kept on app.state; these
helpers only hand them out.
"""
from typing import Optional

from fastapi import Depends, Header, Request

from promptsync.api.errors import AuthenticationRequired
from promptsync.sync.download import DownloadCoordinator
from promptsync.sync.status import StatusReporter
from promptsync.sync.upload import UploadCoordinator


def resolve_user_id(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Optional[str]:
    """
    Map `Authorization: Bearer <token>` to a user id via settings.api_tokens.

    Returns None when the caller can't be identified. Deployments with a real
    identity provider override this dependency.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return request.app.state.settings.api_tokens.get(token)


def require_user(user_id: Optional[str] = Depends(resolve_user_id)) -> str:
    if not user_id:
        raise AuthenticationRequired()
    return user_id


def get_upload_coordinator(request: Request) -> UploadCoordinator:
    return request.app.state.upload


def get_download_coordinator(request: Request) -> DownloadCoordinator:
    return request.app.state.download


def get_status_reporter(request: Request) -> StatusReporter:
    return request.app.state.status
