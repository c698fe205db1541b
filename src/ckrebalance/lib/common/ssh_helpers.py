"""
ssh_helpers.py
- Remote command execution over the OpenSSH client.
- Used to probe nodes at startup and to move staged partition files between nodes.
"""

import os
import subprocess
from loguru import logger

from ckrebalance.core.constants import DEFAULT_SSH_PORT
from ckrebalance.core.errors import RemoteCommandError

def ssh(host, command, user=None, password=None, port=DEFAULT_SSH_PORT, timeout=None, debug=False):
    """
    Execute a command on a remote host over SSH.

    Args:
        host (str): Hostname or IP of the remote machine.
        command (str): The shell command to run.
        user (str): Login user. Uses the ssh client's default when None.
        password (str): Login password. Passed to sshpass via the environment, never argv.
        port (int): SSH port.
        timeout (float): Seconds before the command is killed. None waits indefinitely.
        debug (bool): If True, logs the command before execution.

    Returns:
        CompletedProcess: Subprocess result with stdout, stderr, returncode.
    """
    target = f"{user}@{host}" if user else host
    argv = ["ssh", "-p", str(port), "-o", "StrictHostKeyChecking=accept-new"]
    env = None
    if password:
        argv = ["sshpass", "-e"] + argv
        env = dict(os.environ, SSHPASS=password)
    else:
        argv += ["-o", "BatchMode=yes"]
    argv += [target, command]

    if debug:
        logger.debug(f"[ssh_helpers] SSH {target}: {command}")
    return subprocess.run(
        argv,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=env,
    )

class RemoteShell:
    """Runs shell commands on one node with fixed credentials."""

    def __init__(self, host, user=None, password=None, port=DEFAULT_SSH_PORT):
        self.host = host
        self.user = user
        self.password = password
        self.port = port

    def run(self, command, timeout=None):
        """Run `command` on the node. Raises RemoteCommandError on a non-zero exit."""
        logger.info(f"[ssh] host: {self.host}, command: {command}")
        try:
            result = ssh(
                self.host, command,
                user=self.user, password=self.password, port=self.port,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise RemoteCommandError(self.host, command, -1, str(e)) from e
        if result.returncode != 0:
            raise RemoteCommandError(self.host, command, result.returncode, result.stderr or "")
        return result.stdout

    def probe(self, timeout=10):
        """Check that the node accepts our credentials."""
        self.run("true", timeout=timeout)

    def __repr__(self):
        return f"RemoteShell({self.user}@{self.host}:{self.port})"
