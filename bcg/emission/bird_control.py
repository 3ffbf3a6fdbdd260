"""
BIRD control socket client

Tells a running BIRD to re-read its configuration after a new artifact set
has been written. BIRD replies with numbered lines: ``NNNN-text`` continues
a reply, ``NNNN text`` ends it. Codes starting with 8 or 9 are errors.
"""

import logging
import socket
from typing import List, Optional, Tuple

from bcg.utils.error_handling import EmissionError
from bcg.utils.timeout_config import TimeoutType, get_timeout

logger = logging.getLogger(__name__)

DEFAULT_SOCKET = "/run/bird/bird.ctl"


def _is_final(line: str) -> bool:
    return len(line) >= 5 and line[:4].isdigit() and line[4] == " "


class BirdControl:
    """Minimal client for the BIRD control socket"""

    def __init__(self, socket_path: str = DEFAULT_SOCKET, timeout: Optional[float] = None):
        self.socket_path = socket_path
        self.timeout = timeout

    def _read_reply(self, reader) -> Tuple[str, List[str]]:
        lines = []
        while True:
            line = reader.readline()
            if not line:
                raise EmissionError(f"BIRD closed the control socket {self.socket_path}")
            line = line.rstrip("\r\n")
            lines.append(line)
            if _is_final(line):
                return line[:4], lines

    def run_command(self, command: str) -> List[str]:
        """
        Send one command and return BIRD's reply lines

        Raises:
            EmissionError: socket errors, timeouts or an error reply
        """
        timeout = self.timeout or get_timeout(TimeoutType.DAEMON_CONTROL)
        logger.debug(f"BIRD <- {command}")

        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(timeout)
                sock.connect(self.socket_path)
                with sock.makefile("r", encoding="utf-8", newline="\n") as reader:
                    self._read_reply(reader)  # greeting
                    sock.sendall(f"{command}\n".encode())
                    code, lines = self._read_reply(reader)
        except OSError as e:
            raise EmissionError(f"Cannot talk to BIRD on {self.socket_path}",
                                technical_details=str(e),
                                guidance="Check that BIRD is running and the socket path is right")

        for line in lines:
            logger.debug(f"BIRD -> {line}")

        if code[0] in ("8", "9"):
            raise EmissionError(f"BIRD rejected '{command}'",
                                technical_details="\n".join(lines))
        return lines

    def configure(self) -> List[str]:
        """Ask BIRD to reconfigure from the files on disk"""
        lines = self.run_command("configure")
        logger.info(f"BIRD: {lines[-1][5:] if lines else 'no reply'}")
        return lines
