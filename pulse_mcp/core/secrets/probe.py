"""
gcloud CLI probe

Reads the ambient gcloud configuration: the active project, the
application-default credentials path and an application-default access
token. Every call is best effort and returns a Lookup.
"""

from pathlib import Path
from typing import Optional
import logging

from ...config import GCLOUD_BINARY
from ...shell import run_cli
from .interface import CloudContext, Lookup

logger = logging.getLogger(__name__)

ADC_PATH_FORMAT = "value(config.paths.application_default_credentials_path)"

# gcloud prints this placeholder for properties that were never set
UNSET = "(unset)"


class GCloudProbe:
    """Queries the local gcloud CLI for credential context."""

    def __init__(self, binary: str = GCLOUD_BINARY, timeout: int = 10):
        self.binary = binary
        self.timeout = timeout

    def _run(self, *args: str) -> Lookup:
        ok, output = run_cli([self.binary, *args], timeout=self.timeout)
        if not ok:
            return Lookup.absent(output)
        if not output or output == UNSET:
            return Lookup.absent(f"{' '.join(args)} returned nothing")
        return Lookup(value=output)

    def project_id(self) -> Lookup:
        return self._run("config", "get-value", "project")

    def application_credentials_path(self) -> Lookup:
        """ADC path, only if the file actually exists."""
        lookup = self._run("info", f"--format={ADC_PATH_FORMAT}")
        if lookup.found and not Path(lookup.value).exists():
            return Lookup.absent(f"{lookup.value} does not exist")
        return lookup

    def access_token(self) -> Lookup:
        return self._run("auth", "application-default", "print-access-token")

    def probe(self) -> Optional[CloudContext]:
        """
        Build a CloudContext from the CLI.

        Without a project the context still carries an existing ADC path;
        None means the CLI yielded neither. Never raises.
        """
        project = self.project_id()
        credentials = self.application_credentials_path()
        if not credentials.found:
            logger.debug(f"No application default credentials: {credentials.error}")

        if not project.found:
            logger.info(f"⚪ gcloud project unavailable: {project.error}")
            if not credentials.found:
                return None
            return CloudContext(project_id=None, application_credentials_path=credentials.value)

        logger.info(f"✅ gcloud project: {project.value}")
        return CloudContext(
            project_id=project.value,
            application_credentials_path=credentials.value,
        )
