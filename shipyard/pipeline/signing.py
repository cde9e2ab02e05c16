"""Developer ID code signing of the built app bundle.

Embedded frameworks and dylibs are signed first and individually: some of
them legitimately have nothing to sign, so a failure there is only a
warning. The top-level signature is the binding step and must verify.
"""

from __future__ import annotations

import re
from pathlib import Path

from shipyard.core.result import Err, Ok, Result

from .base import BaseStage
from .errors import NoSigningIdentity, SigningFailed
from .model import SigningOutcome

__all__ = ["SigningStage", "SigningError", "parse_identities"]

SigningError = NoSigningIdentity | SigningFailed

_IDENTITY_RE = re.compile(r'^\s*\d+\)\s+[0-9A-Fa-f]+\s+"(?P<name>[^"]+)"')
_COMPONENT_SUFFIXES = (".framework", ".dylib")


def parse_identities(output: str, identity_filter: str) -> list[str]:
    """Extract identity names from ``security find-identity`` output.

    Order is preserved as reported by the store.
    """
    names: list[str] = []
    for line in output.splitlines():
        m = _IDENTITY_RE.match(line)
        if m is None:
            continue
        name = m.group("name")
        if identity_filter in name and name not in names:
            names.append(name)
    return names


class SigningStage(BaseStage):
    def discover_identity(self) -> Result[str, NoSigningIdentity]:
        """Pick the signing identity: explicit setting first, else the store.

        With several matching identities the first one reported wins.
        """
        signing = self._config.signing
        if signing.identity:
            return Ok(signing.identity)

        cmd = ["security", "find-identity", "-v", "-p", "codesigning"]
        result = self._run(cmd, cwd=self._config.root)
        if isinstance(result, Err):
            return Err(NoSigningIdentity(identity_filter=signing.identity_filter))

        names = parse_identities(result.value, signing.identity_filter)
        if not names:
            return Err(NoSigningIdentity(identity_filter=signing.identity_filter))
        if len(names) > 1:
            self._console.print(
                f"  {len(names)} identities match; using the first: {names[0]}",
            )
        return Ok(names[0])

    def components(self, artifact: Path) -> list[Path]:
        frameworks = artifact / "Contents" / "Frameworks"
        if not frameworks.is_dir():
            return []
        found = [
            p
            for p in frameworks.rglob("*")
            if p.suffix in _COMPONENT_SUFFIXES and not p.is_symlink()
        ]
        # Deepest first so nested components are signed before their parents.
        return sorted(found, key=lambda p: (-len(p.parts), str(p)))

    def sign(
        self, artifact: Path, *, skip: bool = False, dry_run: bool = False
    ) -> Result[SigningOutcome, SigningError]:
        if skip:
            self._warn("code signing skipped (--skip-sign): development build is unsigned")
            return Ok(SigningOutcome(identity=None, succeeded=False, skipped=True))

        identity = self.discover_identity()
        if isinstance(identity, Err):
            return identity
        name = identity.value
        self._console.print(f"  identity: {name}")

        if dry_run:
            looked_up = not self._config.signing.identity
            if looked_up:
                self._console.info("identity lookup ran (read-only): security find-identity")
            self._would(f"sign embedded components and {artifact.name} with: {name}")
            return Ok(SigningOutcome(identity=name, succeeded=False, looked_up=looked_up))

        for component in self.components(artifact):
            cmd = ["codesign", "--force", "--sign", name, "--options", "runtime", str(component)]
            self._echo(cmd)
            result = self._run(cmd, cwd=self._config.root)
            if isinstance(result, Err):
                self._warn(f"could not sign component {component.name}: {result.error}")

        cmd = [
            "codesign",
            "--force",
            "--deep",
            "--verify",
            "--verbose",
            "--sign",
            name,
            "--options",
            "runtime",
        ]
        entitlements = self._config.app.entitlements
        if entitlements.is_file():
            cmd += ["--entitlements", str(entitlements)]
        cmd.append(str(artifact))

        self._echo(cmd)
        result = self._run(cmd, cwd=self._config.root)
        if isinstance(result, Err):
            return Err(SigningFailed(path=artifact, reason=result.error.tail(5) or str(result.error)))

        verify = ["codesign", "--verify", "--verbose", str(artifact)]
        self._echo(verify)
        checked = self._run(verify, cwd=self._config.root)
        if isinstance(checked, Err):
            return Err(
                SigningFailed(
                    path=artifact,
                    reason=f"signature verification failed: {checked.error.tail(5)}",
                )
            )

        self._console.success(f"signed with {name}")
        return Ok(SigningOutcome(identity=name, succeeded=True))
