# deployment.py
import pulumi
import pulumi_azure_native as azure_native
import pulumi_docker as docker
from dataclasses import dataclass
from typing import Any, Dict

from config import DeploymentConfig
from naming import ResourceNames, image_reference, resource_names

REDIS_URL_SCHEME = "rediss"


class DeploymentError(Exception):
    """Raised when a deferred value resolves without the data a declaration needs."""


@dataclass(frozen=True)
class RegistryCredentials:
    username: str
    password: str


@dataclass
class DeploymentOutputs:
    hostname: pulumi.Output[str]
    ip: pulumi.Output[str]
    url: pulumi.Output[str]
    registry_login_server: pulumi.Output[str]
    image_name: pulumi.Output[str]


def redis_url(access_key: str, host: str, port: Any) -> str:
    # Engine numbers arrive as floats.
    return f"{REDIS_URL_SCHEME}://:{access_key}@{host}:{int(port)}"


def container_url(hostname: str, port: int) -> str:
    return f"http://{hostname}:{port}"


def registry_credentials(creds: Any) -> RegistryCredentials:
    """Project a listRegistryCredentials result onto the admin username and first password."""
    passwords = getattr(creds, "passwords", None) or []
    username = getattr(creds, "username", None)
    password = getattr(passwords[0], "value", None) if passwords else None
    if not username or not password:
        raise DeploymentError("Registry admin credentials are not available")
    return RegistryCredentials(username=username, password=password)


def primary_key(keys: Any) -> str:
    key = getattr(keys, "primary_key", None)
    if not key:
        raise DeploymentError("Redis primary access key is not available")
    return key


def address_field(address: Any, field_name: str) -> str:
    """Read one field of a container group's assigned IP address."""
    if address is None:
        raise DeploymentError("Container group has no assigned IP address")
    value = getattr(address, field_name, None)
    if not value:
        raise DeploymentError(f"Container group IP address has no '{field_name}'")
    return value


class ContainerAppBuilder:
    def __init__(self, config: DeploymentConfig):
        self.config = config
        self.names: ResourceNames = resource_names(config.prefix_name)
        self.resources: Dict[str, pulumi.Resource] = {}

    def common_args(self, include_location: bool = True) -> Dict[str, Any]:
        # Unset location falls back to the provider's configured region.
        args: Dict[str, Any] = {}
        if include_location and self.config.location:
            args["location"] = self.config.location
        if self.config.tags:
            args["tags"] = dict(self.config.tags)
        return args

    def register(self, key: str, name: str, resource_type: str, resource: pulumi.Resource):
        self.resources[key] = resource
        pulumi.log.info(f"Declared resource: {name} ({resource_type})")
        return resource

    def build_resource_group(self) -> azure_native.resources.ResourceGroup:
        name = self.names.resource_group
        resource_group = azure_native.resources.ResourceGroup(name, **self.common_args())
        return self.register("resource_group", name, "resources.ResourceGroup", resource_group)

    def build_registry(self, resource_group) -> azure_native.containerregistry.Registry:
        name = self.names.registry
        registry = azure_native.containerregistry.Registry(
            name,
            resource_group_name=resource_group.name,
            admin_user_enabled=True,
            sku={"name": azure_native.containerregistry.SkuName.BASIC},
            **self.common_args(),
        )
        return self.register("registry", name, "containerregistry.Registry", registry)

    def registry_credentials(self, resource_group, registry) -> pulumi.Output[RegistryCredentials]:
        return azure_native.containerregistry.list_registry_credentials_output(
            resource_group_name=resource_group.name,
            registry_name=registry.name,
        ).apply(registry_credentials)

    def registry_login(self, registry, credentials) -> Dict[str, Any]:
        return {
            "server": registry.login_server,
            "username": credentials.apply(lambda c: c.username),
            "password": pulumi.Output.secret(credentials.apply(lambda c: c.password)),
        }

    def build_image(self, registry, credentials) -> docker.Image:
        name = self.names.image
        image_name = registry.login_server.apply(
            lambda server: image_reference(server, self.names.image_repository, self.config.image_tag)
        )
        image = docker.Image(
            name,
            image_name=image_name,
            build={
                "context": self.config.app_path,
                "platform": self.config.image_platform,
            },
            registry=self.registry_login(registry, credentials),
        )
        return self.register("image", name, "docker.Image", image)

    def build_cache(self, resource_group) -> azure_native.cache.Redis:
        name = self.names.cache
        cache = azure_native.cache.Redis(
            name,
            name=self.names.cache_instance,
            location=self.config.cache_location,
            resource_group_name=resource_group.name,
            enable_non_ssl_port=self.config.cache_non_ssl_port_enabled,
            redis_version="Latest",
            minimum_tls_version="1.2",
            redis_configuration={"maxmemory_policy": "allkeys-lru"},
            sku={"name": "Basic", "family": "C", "capacity": 0},
            **self.common_args(include_location=False),
        )
        if self.config.cache_non_ssl_port_enabled:
            pulumi.log.warn(f"Cache '{self.names.cache_instance}' has the non-TLS port enabled")
        return self.register("cache", name, "cache.Redis", cache)

    def cache_connection_string(self, resource_group, cache) -> pulumi.Output[str]:
        access_key = azure_native.cache.list_redis_keys_output(
            name=cache.name,
            resource_group_name=resource_group.name,
        ).apply(primary_key)
        return pulumi.Output.secret(
            pulumi.Output.all(access_key, cache.host_name, cache.ssl_port).apply(
                lambda args: redis_url(*args)
            )
        )

    def build_container_group(
        self, resource_group, registry, credentials, image, connection_string
    ) -> azure_native.containerinstance.ContainerGroup:
        name = self.names.container_group
        port = self.config.container_port
        container_group = azure_native.containerinstance.ContainerGroup(
            name,
            resource_group_name=resource_group.name,
            os_type="Linux",
            restart_policy="Always",
            image_registry_credentials=[self.registry_login(registry, credentials)],
            containers=[
                {
                    "name": self.names.container,
                    "image": image.image_name,
                    "ports": [{"port": port, "protocol": "TCP"}],
                    "environment_variables": [
                        {"name": "PORT", "value": str(port)},
                        {
                            "name": "WEATHER_API_KEY",
                            "value": pulumi.Output.secret(self.config.weather_api_key),
                        },
                        {"name": "REDIS_URL", "value": connection_string},
                    ],
                    "resources": {
                        "requests": {
                            "cpu": self.config.cpu,
                            "memory_in_gb": self.config.memory,
                        }
                    },
                }
            ],
            ip_address={
                "type": azure_native.containerinstance.ContainerGroupIpAddressType.PUBLIC,
                "dns_name_label": self.names.dns_label,
                "ports": [{"port": self.config.public_port, "protocol": "TCP"}],
            },
            **self.common_args(),
        )
        return self.register(
            "container_group", name, "containerinstance.ContainerGroup", container_group
        )

    def outputs(self, container_group, registry, image) -> DeploymentOutputs:
        address = container_group.ip_address
        port = self.config.container_port
        return DeploymentOutputs(
            hostname=address.apply(lambda addr: address_field(addr, "fqdn")),
            ip=address.apply(lambda addr: address_field(addr, "ip")),
            url=address.apply(lambda addr: container_url(address_field(addr, "fqdn"), port)),
            registry_login_server=registry.login_server,
            image_name=image.image_name,
        )

    def build(self) -> DeploymentOutputs:
        resource_group = self.build_resource_group()
        registry = self.build_registry(resource_group)
        credentials = self.registry_credentials(resource_group, registry)
        image = self.build_image(registry, credentials)
        cache = self.build_cache(resource_group)
        connection_string = self.cache_connection_string(resource_group, cache)
        container_group = self.build_container_group(
            resource_group, registry, credentials, image, connection_string
        )
        return self.outputs(container_group, registry, image)


def declare_deployment(config: DeploymentConfig) -> DeploymentOutputs:
    """Declare every resource for the given config and return the derived outputs."""
    return ContainerAppBuilder(config).build()
