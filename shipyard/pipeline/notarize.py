"""Notarization of the installer image.

The image is (optionally) signed, submitted with ``notarytool submit
--wait`` and, once accepted, the ticket is stapled onto the file. The
submit call is the one long blocking wait in a release; the notary
service owns timeouts and retries, so no local timeout is applied.
"""

from __future__ import annotations

import json

from shipyard.core.config import NotaryCredentials
from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_str

from .base import BaseStage
from .errors import NotarizationRejected, SigningFailed, StapleFailed
from .model import InstallerImage, NotarizationOutcome

__all__ = ["NotarizationStage", "NotarizationError", "ACCEPTED", "parse_verdict"]

NotarizationError = SigningFailed | NotarizationRejected | StapleFailed

ACCEPTED = "Accepted"


def parse_verdict(output: str) -> tuple[str | None, str | None]:
    """Return ``(status, submission_id)`` from notarytool JSON output."""
    try:
        data = as_str_dict(json.loads(output))
    except json.JSONDecodeError:
        return None, None
    if data is None:
        return None, None
    return get_str(data, "status"), get_str(data, "id")


class NotarizationStage(BaseStage):
    def notarize(
        self,
        image: InstallerImage,
        credentials: NotaryCredentials,
        *,
        identity: str | None = None,
        skip: bool = False,
        dry_run: bool = False,
    ) -> Result[NotarizationOutcome, NotarizationError]:
        if skip:
            self._warn("notarization skipped (--skip-sign): image will not pass Gatekeeper")
            return Ok(NotarizationOutcome(stapled=False, skipped=True))

        missing = credentials.missing()
        if missing:
            self._warn(
                f"notarization skipped: {', '.join(missing)} not set; "
                "this image is not suitable for public distribution"
            )
            return Ok(NotarizationOutcome(stapled=False, skipped=True))

        if dry_run:
            if identity:
                self._would(f"sign {image.path.name} with: {identity}")
            self._would(f"submit {image.path.name} for notarization and staple the ticket")
            return Ok(NotarizationOutcome(stapled=False))

        cwd = self._config.root

        if identity:
            cmd = ["codesign", "--force", "--sign", identity, str(image.path)]
            self._echo(cmd)
            signed = self._run(cmd, cwd=cwd)
            if isinstance(signed, Err):
                return Err(SigningFailed(path=image.path, reason=signed.error.tail(5)))
        else:
            self._warn(f"no signing identity; submitting {image.path.name} without signing it")

        submit = [
            "xcrun",
            "notarytool",
            "submit",
            str(image.path),
            "--apple-id",
            credentials.apple_id or "",
            "--password",
            credentials.password or "",
            "--team-id",
            credentials.team_id or "",
            "--wait",
            "--output-format",
            "json",
        ]
        secrets = {credentials.apple_id, credentials.password, credentials.team_id}
        self._echo(["***" if part in secrets else part for part in submit])
        self._console.print("  waiting for the notary service verdict...")
        submitted = self._run(submit, cwd=cwd, timeout=None)

        output = submitted.value if isinstance(submitted, Ok) else submitted.error.stdout
        status, submission_id = parse_verdict(output)
        if isinstance(submitted, Err) or status != ACCEPTED:
            reason = submitted.error.tail(5) if isinstance(submitted, Err) else ""
            return Err(
                NotarizationRejected(
                    status=status or "unknown",
                    submission_id=submission_id,
                    reason=reason,
                )
            )

        self._console.success(f"notarization accepted ({submission_id or 'no id'})")

        staple = ["xcrun", "stapler", "staple", str(image.path)]
        self._echo(staple)
        stapled = self._run(staple, cwd=cwd)
        if isinstance(stapled, Err):
            return Err(StapleFailed(path=image.path, reason=stapled.error.tail(5)))

        self._console.success("ticket stapled")
        return Ok(NotarizationOutcome(stapled=True, submission_id=submission_id))
