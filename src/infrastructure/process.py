import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from src.domain.exceptions import CommandFailedException

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600  # Seconds


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


async def run_command(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    timeout: float = DEFAULT_TIMEOUT,
    check: bool = True,
    env: Optional[Mapping[str, str]] = None,
    secrets: Sequence[str] = (),
) -> CommandResult:
    """
    Runs a command without a shell and returns its captured output.

    stdin is closed so tools that prompt for input fail instead of hanging.
    A command that outlives `timeout` is killed and reported as failed.
    Any of `secrets` appearing in the arguments is masked in logs and errors.
    """
    shown_args = _mask(args, secrets)
    logger.debug(f"Running: {' '.join(shown_args)} (cwd={cwd})")
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=dict(env) if env is not None else None,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise CommandFailedException(shown_args, None, f"no result after {timeout}s")

    result = CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace").rstrip(),
        stderr=stderr.decode(errors="replace").strip(),
    )
    if result.stdout:
        logger.debug(result.stdout)

    if check and result.returncode != 0:
        raise CommandFailedException(shown_args, result.returncode, _mask([result.stderr], secrets)[0])
    return result


def _mask(values: Sequence[str], secrets: Sequence[str]) -> list:
    masked = []
    for value in values:
        for secret in secrets:
            if secret:
                value = value.replace(secret, "***")
        masked.append(value)
    return masked
