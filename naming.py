# naming.py
"""Logical resource names derived from the configured prefix."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceNames:
    resource_group: str
    registry: str
    image: str
    image_repository: str
    cache: str
    cache_instance: str
    container_group: str
    container: str
    dns_label: str


def resource_names(prefix: str) -> ResourceNames:
    """Return the names for every declared resource. Same prefix, same names."""
    return ResourceNames(
        resource_group=f"{prefix}-rg",
        registry=f"{prefix}ACR",
        image=f"{prefix}-image",
        image_repository=prefix,
        cache=f"{prefix}-redis",
        cache_instance=f"{prefix}-weather-cache",
        container_group=f"{prefix}-container-group",
        container=prefix,
        dns_label=prefix,
    )


def image_reference(login_server: str, repository: str, tag: str) -> str:
    return f"{login_server}/{repository}:{tag}"
