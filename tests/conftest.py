"""Shared fixtures: in-memory store, scripted chat model, wired services."""

from __future__ import annotations

import pytest

from sheet_gateway.config import Settings
from sheet_gateway.dependencies import Services, build_services
from sheet_gateway.llm_client import LLMClient
from sheet_gateway.store import MemoryStore
from tests.fakes import ADMIN_PASSWORD, ChatFactoryStub, ScriptedChat


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="sk-test",
        default_model="free-model",
        premium_model="premium-model",
        premium_models=["premium-model"],
        admin_password=ADMIN_PASSWORD,
        valid_auth_keys=["DEMO-KEY"],
        allowed_origins=["https://localhost:3000", "https://excel.office.com"],
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def chat() -> ScriptedChat:
    return ScriptedChat(reply='{"operation": "merge", "parameters": {}}')


@pytest.fixture
def chat_factory(chat: ScriptedChat) -> ChatFactoryStub:
    return ChatFactoryStub(chat)


@pytest.fixture
def llm(settings: Settings, chat_factory: ChatFactoryStub) -> LLMClient:
    return LLMClient(settings, factory=chat_factory)


@pytest.fixture
def services(settings: Settings, store: MemoryStore, chat_factory: ChatFactoryStub) -> Services:
    return build_services(settings, store=store, chat_factory=chat_factory)
