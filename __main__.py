# main.py
import os

import pulumi
from config import DeploymentConfig, load_config
from deployment import ContainerAppBuilder

CONFIG_FILE = "config.yaml"


def read_config() -> DeploymentConfig:
    """Prefer a local config.yaml; fall back to the stack configuration."""
    if os.path.exists(CONFIG_FILE):
        pulumi.log.info(f"Loading configuration from {CONFIG_FILE}")
        return load_config(CONFIG_FILE)
    return DeploymentConfig.from_pulumi_config(pulumi.Config())


def main():
    # Configuration errors stop the run before anything is declared.
    try:
        config = read_config()
    except Exception as e:
        pulumi.log.error(f"Failed to load configuration: {e}")
        raise

    try:
        outputs = ContainerAppBuilder(config).build()
    except Exception as e:
        pulumi.log.error(f"Failed during resource build: {e}")
        raise

    pulumi.export("hostname", outputs.hostname)
    pulumi.export("ip", outputs.ip)
    pulumi.export("url", outputs.url)
    pulumi.export("registry_login_server", outputs.registry_login_server)
    pulumi.export("image_name", outputs.image_name)


if __name__ == "__main__":
    main()
