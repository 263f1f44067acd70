"""
Keychain Provisioner - command line entry point.
"""

import argparse
import getpass
import json
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import ProvisionerConfig, load_config
from .errors import ProvisioningCancelled
from .keychain.models import ProvisioningRequest
from .loader import DeveloperProfileLoader
from .security.credential_store import (
    CredentialStore,
    encode_archive,
    generate_credential_id,
)
from .security.vault import CredentialKind, StoredCredential

logger = logging.getLogger("keychain-provisioner")

EXIT_FAILURE = 1
EXIT_CANCELLED = 130

PASSWORD_ENV_VAR = "KEYCHAIN_PROVISIONER_KEYCHAIN_PASSWORD"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keychain-provisioner",
        description="Install developer profiles into a macOS keychain for code signing.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a developer profile for a build")
    imp.add_argument("--profile-id", required=True, help="Developer profile credential id")
    imp.add_argument("--job", required=True, help="Full name of the job, e.g. folder/app")
    imp.add_argument("--workspace", default=".", help="Build workspace (default: current directory)")
    imp.add_argument("--existing", action="store_true", help="Import into an existing keychain")
    imp.add_argument("--keychain-name", help="Configured keychain name (deprecated)")
    imp.add_argument("--keychain-id", help="Keychain credential id")
    imp.add_argument("--keychain-path", help="Keychain path")
    imp.add_argument(
        "--keychain-password",
        help=f"Keychain password (prefer the {PASSWORD_ENV_VAR} environment variable)",
    )
    imp.add_argument("--debug-password", help="Fixed password for the temporary keychain")
    imp.add_argument("--json", action="store_true", help="Print the result as JSON")
    imp.add_argument(
        "run",
        nargs=argparse.REMAINDER,
        help="Command to run while the keychain is provisioned (after --)",
    )

    add_profile = sub.add_parser("add-profile", help="Store a developer profile archive")
    add_profile.add_argument("--id", help="Credential id (generated if omitted)")
    add_profile.add_argument("--description", default="", help="Description")
    add_profile.add_argument("--archive", required=True, help="Zip archive with .p12 and .mobileprovision files")
    add_profile.add_argument("--password", help="Password of the .p12 files (prompted if omitted)")

    add_keychain = sub.add_parser("add-keychain", help="Store an existing keychain's path and password")
    add_keychain.add_argument("--id", help="Credential id (generated if omitted)")
    add_keychain.add_argument("--description", default="", help="Description")
    add_keychain.add_argument("--path", required=True, help="Keychain path")
    add_keychain.add_argument("--password", help="Keychain password (prompted if omitted)")

    sub.add_parser("list", help="List stored credentials")
    return parser


def open_store(config: ProvisionerConfig) -> CredentialStore:
    return CredentialStore(store_path=config.credential_store_path, key_file=config.key_file)


def child_command(run: Optional[list[str]]) -> list[str]:
    """The command to run after provisioning, without the separating --."""
    if not run:
        return []
    return list(run[1:]) if run[0] == "--" else list(run)


def cmd_import(args: argparse.Namespace, config: ProvisionerConfig) -> int:
    request = ProvisioningRequest(
        profile_id=args.profile_id,
        job_full_name=args.job,
        workspace=Path(args.workspace).resolve(),
        import_into_existing_keychain=args.existing,
        keychain_name=args.keychain_name,
        keychain_id=args.keychain_id,
        keychain_path=args.keychain_path,
        keychain_password=args.keychain_password or os.environ.get(PASSWORD_ENV_VAR),
        password_for_debug=args.debug_password,
    )
    loader = DeveloperProfileLoader(config, open_store(config))

    command = child_command(args.run)
    result = loader.perform(request)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    if not result.success:
        return EXIT_FAILURE
    if not command:
        return 0

    try:
        logger.info(f"Running {command[0]} with the provisioned keychain")
        return subprocess.call(command)
    finally:
        loader.cleanup(result.state)


def _store_credential(
    config: ProvisionerConfig,
    kind: CredentialKind,
    credential_id: Optional[str],
    description: str,
    data: dict,
) -> int:
    credential = StoredCredential(
        id=credential_id or generate_credential_id(),
        kind=kind,
        description=description,
        data=data,
    )
    print(open_store(config).store(credential))
    return 0


def cmd_add_profile(args: argparse.Namespace, config: ProvisionerConfig) -> int:
    archive = Path(args.archive).expanduser().read_bytes()
    password = args.password if args.password is not None else getpass.getpass("Identity password: ")
    return _store_credential(
        config,
        CredentialKind.DEVELOPER_PROFILE,
        args.id,
        args.description,
        {"archive": encode_archive(archive), "password": password},
    )


def cmd_add_keychain(args: argparse.Namespace, config: ProvisionerConfig) -> int:
    password = args.password if args.password is not None else getpass.getpass("Keychain password: ")
    return _store_credential(
        config,
        CredentialKind.KEYCHAIN,
        args.id,
        args.description,
        {"path": args.path, "password": password},
    )


def cmd_list(args: argparse.Namespace, config: ProvisionerConfig) -> int:
    for credential in open_store(config).list_credentials():
        print(json.dumps(credential.to_dict()))
    return 0


COMMANDS = {
    "import": cmd_import,
    "add-profile": cmd_add_profile,
    "add-keychain": cmd_add_keychain,
    "list": cmd_list,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
        return COMMANDS[args.command](args, config)
    except (ProvisioningCancelled, KeyboardInterrupt):
        logger.warning("Interrupted")
        return EXIT_CANCELLED
    except (OSError, ValueError) as e:
        logger.error(f"{e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
