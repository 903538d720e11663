# sheet_gateway/dependencies.py
from __future__ import annotations
import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from .authorizer import RequestAuthorizer
from .config import Settings
from .errors import AdminRequired
from .interpreter import CommandInterpreter
from .llm_client import ChatFactory, LLMClient
from .registry import AuthKeyRegistry
from .store import KeyValueStore, make_store
from .tasks import DetachedTasks
from .usage_log import ActivityLog


@dataclass
class Services:
    """Per-process collaborators, built once at startup and shared by all requests."""

    settings: Settings
    store: KeyValueStore
    registry: AuthKeyRegistry
    activity_log: ActivityLog
    tasks: DetachedTasks
    authorizer: RequestAuthorizer
    interpreter: CommandInterpreter


def build_services(
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    chat_factory: Optional[ChatFactory] = None,
) -> Services:
    store = store or make_store(settings)
    tasks = DetachedTasks()
    registry = AuthKeyRegistry(store)
    activity_log = ActivityLog(store, retention_days=settings.log_retention_days)
    authorizer = RequestAuthorizer(
        registry,
        activity_log,
        tasks,
        allow_list=settings.valid_auth_keys,
        tz_name=settings.display_timezone,
    )
    interpreter = CommandInterpreter(LLMClient(settings, factory=chat_factory))
    return Services(
        settings=settings,
        store=store,
        registry=registry,
        activity_log=activity_log,
        tasks=tasks,
        authorizer=authorizer,
        interpreter=interpreter,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def is_admin(settings: Settings, password: Optional[str]) -> bool:
    if not settings.admin_password or not password:
        return False
    return hmac.compare_digest(password.encode(), settings.admin_password.encode())


def require_admin(
    request: Request,
    x_admin_password: Optional[str] = Header(default=None),
) -> None:
    if not is_admin(get_services(request).settings, x_admin_password):
        raise AdminRequired()
