"""
Service wiring — one set of collaborators per Flask app.

    init_services(app)          # called by create_app
    get_services().engine       # inside a request / app context

Stored in ``app.extensions["lpms"]`` so tests can swap a collaborator on a
single app without touching module globals.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from lpms.services.bulk_service import BulkCoordinator
from lpms.services.object_refs import ObjectRefTracker
from lpms.services.object_store import LocalObjectStore, ObjectStore
from lpms.services.reserve_service import LifecycleEngine
from lpms.services.user_directory import UserDirectory
from lpms.services.window_gate import WindowGate, WindowSettingStore

EXTENSION_KEY = "lpms"


@dataclass
class Services:
    store: ObjectStore
    directory: UserDirectory
    gate: WindowGate
    tracker: ObjectRefTracker
    engine: LifecycleEngine
    bulk: BulkCoordinator


def build_services(store: ObjectStore | None = None) -> Services:
    store = store or LocalObjectStore()
    directory = UserDirectory()
    gate = WindowGate(WindowSettingStore())
    tracker = ObjectRefTracker(store)
    engine = LifecycleEngine(gate, tracker, directory)
    return Services(
        store=store,
        directory=directory,
        gate=gate,
        tracker=tracker,
        engine=engine,
        bulk=BulkCoordinator(engine),
    )


def init_services(app: Flask) -> Services:
    services = build_services()
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
