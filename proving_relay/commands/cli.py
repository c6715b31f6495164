"""
Command line entrypoint.

    proving-relay run --config config.json [--env-file .env]
    proving-relay provision-keys --config config.json
"""

import asyncio

import click
from pydantic import ValidationError

from proving_relay import __version__
from proving_relay.clients import ProvingServiceClient
from proving_relay.config import CircuitType, RelayConfig
from proving_relay.env import Env, load_env
from proving_relay.errors import ConfigurationError, RelayError
from proving_relay.keys import write_key_file
from proving_relay.logging import Logger, LoggingConfig
from proving_relay.server.relay_server import RelayServer


def _install_uvloop() -> None:
    try:
        import uvloop

        uvloop.install()

    except Exception:
        pass


def _load(config_path: str, env_file: str | None) -> tuple[RelayConfig, Env]:
    try:
        env = load_env(Env, env_file=env_file)

    except (ValidationError, ValueError) as err:
        raise ConfigurationError(f"Invalid environment: {err}") from err

    config = RelayConfig.from_file_and_env(config_path, env=env)

    try:
        LoggingConfig().update(
            log_directory=env.RELAY_LOGS_DIRECTORY,
            log_level=env.RELAY_LOG_LEVEL,
            log_output=env.RELAY_LOG_OUTPUT,
        )

    except ValueError as err:
        raise ConfigurationError(str(err)) from err

    return config, env


async def run_relay(config: RelayConfig) -> int:
    logger = Logger()
    server = RelayServer(config, logger=logger)

    try:
        await server.run()

    finally:
        await logger.close()

    return server.error_surface.unreported_proofs


async def provision_keys(
    config: RelayConfig,
    prover: ProvingServiceClient | None = None,
) -> list[tuple[CircuitType, str | None]]:
    """
    Fetch each configured circuit's verification key and write its key file.

    Existing key files are never overwritten. Returns (circuit, written path)
    pairs, with None for circuits whose file already existed.
    """
    prover = prover or ProvingServiceClient(config)
    keys_dir = config.sdk_config.keys_dir

    written: list[tuple[CircuitType, str | None]] = []

    try:
        for circuit in config.circuit_types:
            verification_keys = await prover.get_verification_keys([circuit])
            path = await asyncio.get_running_loop().run_in_executor(
                None,
                write_key_file,
                keys_dir,
                circuit,
                config.circuit_version,
                verification_keys[0],
            )

            written.append((circuit, path))

    finally:
        await prover.close()

    return written


@click.group()
@click.version_option(version=__version__, prog_name="proving-relay")
def main():
    """
    proving-relay - claims proving tasks from a rollup coordinator and
    delegates the proofs to a remote proving service.
    """


@main.command("run")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to the relay configuration JSON document",
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Dotenv file with environment overrides",
)
def run(config_path: str, env_file: str | None):
    """Run the relay until SIGINT or SIGTERM."""
    try:
        config, _ = _load(config_path, env_file)

    except ConfigurationError as err:
        click.echo(f"✗ {err}", err=True)
        raise SystemExit(1)

    _install_uvloop()

    try:
        unreported_proofs = asyncio.run(run_relay(config))

    except ConfigurationError as err:
        click.echo(f"✗ {err}", err=True)
        raise SystemExit(1)

    if unreported_proofs:
        click.echo(f"✗ {unreported_proofs} completed proofs were never reported", err=True)
        raise SystemExit(2)


@main.command("provision-keys")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to the relay configuration JSON document",
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Dotenv file with environment overrides",
)
def provision_keys_command(config_path: str, env_file: str | None):
    """Write verification key files for every configured circuit."""
    try:
        config, _ = _load(config_path, env_file)
        written = asyncio.run(provision_keys(config))

    except RelayError as err:
        click.echo(f"✗ {err}", err=True)
        raise SystemExit(1)

    for circuit, path in written:
        if path is None:
            click.echo(f"- {circuit.circuit_name}: key file exists, left untouched")

        else:
            click.echo(f"✓ {circuit.circuit_name}: wrote {path}")


if __name__ == "__main__":
    main()
