from __future__ import annotations

import pytest

from pulumi_mocks import MOCKS, AzureMocks


@pytest.fixture
def mocks() -> AzureMocks:
    return MOCKS


@pytest.fixture
def demo_settings() -> dict[str, object]:
    return {
        "prefixName": "demo",
        "containerPort": 8080,
        "publicPort": 80,
        "cpu": 1,
        "memory": 1.5,
        "imageTag": "v1",
        "appPath": "./app",
        "weatherApiKey": "secret",
    }
