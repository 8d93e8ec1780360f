"""
Skopeo client infrastructure for regsync.

Provides the image transport used by the sync services.
All registry and directory operations go through this client, making them:
- Easy to mock for testing
- Consistent in error classification
- Isolated from the orchestration logic
"""

import json
import logging
import subprocess
from typing import List, Optional

from ..domain.context import CopyOptions, SystemContext
from ..domain.manifest import ImageInspectInfo
from ..domain.reference import ImageReference
from ..errors import (
    AuthenticationError,
    ImageNotFoundError,
    SyncTimeoutError,
    TransientTransportError,
    TransportError,
)
from .deadline import Deadline

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = (
    "manifest unknown",
    "name unknown",
    "not found",
    "no such file or directory",
    "repository does not exist",
)
_AUTH_MARKERS = (
    "unauthorized",
    "authentication required",
    "denied",
    "invalid username/password",
)


def classify_error(stderr: str, cmd: str) -> TransportError:
    """Map skopeo's stderr to a TransportError subclass."""
    message = (stderr or "").strip() or f"{cmd} failed"
    lowered = message.lower()
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return AuthenticationError(message)
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return ImageNotFoundError(message)
    return TransientTransportError(message)


def _context_flags(ctx: SystemContext, prefix: str = "") -> List[str]:
    flags = []
    if ctx.credentials:
        flags += [f"--{prefix}creds", ctx.credentials]
    if ctx.tls_verify is not None:
        flags.append(f"--{prefix}tls-verify={'true' if ctx.tls_verify else 'false'}")
    if ctx.cert_dir:
        flags += [f"--{prefix}cert-dir", ctx.cert_dir]
    return flags


class SkopeoClient:
    """
    Abstraction over the skopeo command line.

    Provides tag listing, inspection and copying with errors classified
    into not-found, authentication and transient failures.

    Example:
        client = SkopeoClient()
        ref = parse_docker_reference("registry.example.com/busybox:latest")
        info = client.inspect(ref, SystemContext(), Deadline(60))
        print(info.architecture, len(info.layers))
    """

    def __init__(self, executable: str = "skopeo"):
        """
        Initialize SkopeoClient.

        Args:
            executable: skopeo binary name or path
        """
        self.executable = executable

    def _global_flags(self, ctx: SystemContext) -> List[str]:
        flags = []
        if ctx.override_arch:
            flags += ["--override-arch", ctx.override_arch]
        return flags

    def _run(self, args: List[str], deadline: Optional[Deadline]) -> str:
        """
        Run skopeo and return its stdout.

        Raises:
            SyncTimeoutError: the deadline elapsed before or during the call
            TransportError: skopeo is missing or exited non-zero
        """
        timeout = deadline.remaining() if deadline else None
        cmd = [self.executable] + args
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise SyncTimeoutError(f"Command timed out: {args[0]}")
        except FileNotFoundError:
            raise TransportError(f"skopeo executable not found: {self.executable}")

        if result.returncode != 0:
            raise classify_error(result.stderr, f"skopeo {args[0]}")
        return result.stdout

    def _run_json(self, args: List[str], deadline: Optional[Deadline]):
        output = self._run(args, deadline)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise TransportError(f"Unexpected output from skopeo {args[0]}: {e}")

    def list_tags(
        self,
        ref: ImageReference,
        ctx: SystemContext,
        deadline: Optional[Deadline] = None
    ) -> List[str]:
        """
        List every tag of the repository ``ref`` belongs to.

        Args:
            ref: Any reference into the repository (tag is ignored)
            ctx: Registry settings
            deadline: Shared run deadline

        Returns:
            Tag names in registry order
        """
        repo = f"docker://{ref.repository}"
        data = self._run_json(
            self._global_flags(ctx) + ["list-tags"] + _context_flags(ctx) + [repo],
            deadline,
        )
        return [str(tag) for tag in (data.get('Tags') or [])]

    def inspect(
        self,
        ref: ImageReference,
        ctx: SystemContext,
        deadline: Optional[Deadline] = None
    ) -> ImageInspectInfo:
        """
        Fetch architecture and layer digests of an image.

        Args:
            ref: Image to inspect
            ctx: Registry settings (ignored for dir references)
            deadline: Shared run deadline
        """
        flags = [] if ref.is_directory else _context_flags(ctx)
        data = self._run_json(
            self._global_flags(ctx) + ["inspect"] + flags + [str(ref)],
            deadline,
        )
        return ImageInspectInfo.from_dict(data)

    def copy(
        self,
        source: ImageReference,
        destination: ImageReference,
        options: CopyOptions,
        deadline: Optional[Deadline] = None
    ) -> str:
        """
        Copy one image.

        Args:
            source: Image to copy
            destination: Where to write it
            options: Signature policy, signing and per-side contexts
            deadline: Shared run deadline

        Returns:
            skopeo's progress report
        """
        args = self._global_flags(options.source_ctx)
        if options.policy_path:
            args += ["--policy", options.policy_path]
        if options.insecure_policy:
            args.append("--insecure-policy")

        args.append("copy")
        if options.remove_signatures:
            args.append("--remove-signatures")
        if options.sign_by:
            args += ["--sign-by", options.sign_by]
        if not source.is_directory:
            args += _context_flags(options.source_ctx, prefix="src-")
        if not destination.is_directory:
            args += _context_flags(options.destination_ctx, prefix="dest-")
        args += [str(source), str(destination)]

        report = self._run(args, deadline)
        for line in report.splitlines():
            logger.debug(line)
        return report
