from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from rr.core.config import DEFAULT_CONFIG_FILE, Config, load_config_or_default
from rr.core.result import Err
from rr.output.console import ConsoleProtocol, RichConsole
from rr.output.errors import engine_error_exit_code, print_engine_error
from rr.providers.credentials import ConfigCredentialStore
from rr.providers.http import RealHttpClient
from rr.providers.registry import ProviderRegistry
from rr.services.callbacks import (
    CallbackDispatcher,
    HttpTaskCallbackSink,
    NullCallbackSink,
    TaskCallbackSink,
)
from rr.services.reconciler import BuildStatusReconciler
from rr.services.rollout import RolloutController
from rr.services.stores import StoreClient, StoreGatewayClient, UnconfiguredStoreClient
from rr.services.submissions import SubmissionTracker
from rr.store.state import JsonFileStore

CONFIG_ENV = "RR_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    store: JsonFileStore
    reconciler: BuildStatusReconciler
    tracker: SubmissionTracker
    rollout: RolloutController


def config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_FILE)


def build_context() -> CLIContext:
    console = RichConsole()

    config_result = load_config_or_default(config_path())
    if isinstance(config_result, Err):
        print_engine_error(config_result.error, console)
        raise typer.Exit(code=engine_error_exit_code(config_result.error))
    config = config_result.value

    store_result = JsonFileStore.load(Path(config.state.path))
    if isinstance(store_result, Err):
        print_engine_error(store_result.error, console)
        raise typer.Exit(code=engine_error_exit_code(store_result.error))
    store = store_result.value

    http = RealHttpClient()
    credentials = ConfigCredentialStore(config.tenants)
    registry = ProviderRegistry.create(http, credentials, config.providers)

    sink: TaskCallbackSink = (
        HttpTaskCallbackSink(http, config.callbacks) if config.callbacks.url else NullCallbackSink()
    )
    stores: StoreClient = (
        StoreGatewayClient(http, config.stores)
        if config.stores.gateway_url
        else UnconfiguredStoreClient()
    )

    tracker = SubmissionTracker(store, stores, console)
    return CLIContext(
        config=config,
        console=console,
        store=store,
        reconciler=BuildStatusReconciler(
            store,
            registry,
            CallbackDispatcher(sink, console),
            console,
            max_workers=config.polling.max_workers,
            check_timeout=config.polling.check_timeout_seconds,
        ),
        tracker=tracker,
        rollout=RolloutController(store, stores, tracker, console),
    )
