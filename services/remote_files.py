# services/remote_files.py
"""
Remote log file access over FTP or SFTP.

Both transports expose the same small async surface: list a directory, read
a file from a byte offset to its end, read a whole file. The underlying
libraries (ftplib, paramiko) are blocking, so every call is pushed to a
worker thread with asyncio.to_thread.
"""

import asyncio
import ftplib
import logging
import socket
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import paramiko

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Base exception for remote file access errors."""
    pass


class TransportConnectionError(TransportError):
    """Failed to connect to the remote host."""
    pass


class TransportAuthError(TransportError):
    """Remote host rejected the credentials."""
    pass


@dataclass
class RemoteFile:
    """One entry of a remote directory listing."""
    name: str
    size: int
    modified_at: Optional[datetime] = None


class RemoteLogTransport(ABC):
    """Directory listing and byte-range reads on a remote host."""

    def __init__(self, host: str, port: int, username: str, password: str,
                 timeout: float = 20.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

    @abstractmethod
    async def connect(self):
        """Open a session. Raises TransportConnectionError / TransportAuthError."""

    @abstractmethod
    async def disconnect(self):
        """Close the session. Never raises."""

    @abstractmethod
    async def list_files(self, directory: str) -> list[RemoteFile]:
        """Regular files in directory (no subdirectories)."""

    @abstractmethod
    async def read_range(self, path: str, offset: int) -> bytes:
        """Bytes of path from offset to end of file."""

    async def read_all(self, path: str) -> bytes:
        """Whole content of path."""
        return await self.read_range(path, 0)

    def __repr__(self):
        return f"<{type(self).__name__} {self.host}:{self.port}>"


# ===========================================
# SFTP
# ===========================================

class SFTPLogTransport(RemoteLogTransport):
    """paramiko-based SFTP access."""

    def __init__(self, host: str, port: int, username: str, password: str,
                 timeout: float = 20.0):
        super().__init__(host, port, username, password, timeout)
        self._transport = None
        self._sftp = None

    async def connect(self):
        def _connect():
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)

            self._transport = paramiko.Transport(sock)
            self._transport.banner_timeout = self.timeout
            self._transport.auth_timeout = self.timeout
            self._transport.connect(username=self.username, password=self.password)
            self._sftp = paramiko.SFTPClient.from_transport(self._transport)

        try:
            await asyncio.to_thread(_connect)
        except paramiko.AuthenticationException as e:
            await self.disconnect()
            raise TransportAuthError(f"Authentication failed: {e}") from e
        except (OSError, paramiko.SSHException) as e:
            await self.disconnect()
            raise TransportConnectionError(f"Connection to {self.host}:{self.port} failed: {e}") from e

        logger.debug(f"SFTP connected to {self.host}:{self.port}")

    async def disconnect(self):
        try:
            if self._sftp:
                await asyncio.to_thread(self._sftp.close)
            if self._transport:
                await asyncio.to_thread(self._transport.close)
        except Exception as e:
            logger.error(f"Error disconnecting SFTP: {e}")
        finally:
            self._sftp = None
            self._transport = None

    def _client(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise TransportConnectionError("SFTP session is not connected")
        return self._sftp

    async def list_files(self, directory: str) -> list[RemoteFile]:
        sftp = self._client()

        def _list():
            files = []
            for attr in sftp.listdir_attr(directory):
                if attr.st_mode is not None and stat.S_ISDIR(attr.st_mode):
                    continue
                modified = (
                    datetime.fromtimestamp(attr.st_mtime, tz=timezone.utc)
                    if attr.st_mtime else None
                )
                files.append(RemoteFile(name=attr.filename, size=attr.st_size or 0, modified_at=modified))
            return files

        try:
            return await asyncio.to_thread(_list)
        except (OSError, paramiko.SSHException, paramiko.SFTPError) as e:
            raise TransportError(f"Cannot list {directory}: {e}") from e

    async def read_range(self, path: str, offset: int) -> bytes:
        sftp = self._client()

        def _read():
            with sftp.open(path, 'rb') as f:
                f.seek(offset)
                return f.read()

        try:
            return await asyncio.to_thread(_read)
        except (OSError, paramiko.SSHException, paramiko.SFTPError) as e:
            raise TransportError(f"Cannot read {path} from {offset}: {e}") from e


# ===========================================
# FTP
# ===========================================

def _parse_mlsd_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value[:14], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class FTPLogTransport(RemoteLogTransport):
    """ftplib-based FTP access (passive mode, binary transfers)."""

    def __init__(self, host: str, port: int, username: str, password: str,
                 timeout: float = 20.0):
        super().__init__(host, port, username, password, timeout)
        self._ftp = None

    async def connect(self):
        def _connect():
            ftp = ftplib.FTP()
            ftp.connect(self.host, self.port, timeout=self.timeout)
            try:
                ftp.login(self.username, self.password)
            except ftplib.error_perm:
                ftp.close()
                raise
            ftp.set_pasv(True)
            ftp.voidcmd("TYPE I")
            return ftp

        try:
            self._ftp = await asyncio.to_thread(_connect)
        except ftplib.error_perm as e:
            raise TransportAuthError(f"Authentication failed: {e}") from e
        except (OSError, EOFError, ftplib.Error) as e:
            raise TransportConnectionError(f"Connection to {self.host}:{self.port} failed: {e}") from e

        logger.debug(f"FTP connected to {self.host}:{self.port}")

    async def disconnect(self):
        if not self._ftp:
            return
        ftp, self._ftp = self._ftp, None
        try:
            await asyncio.to_thread(ftp.quit)
        except (OSError, EOFError, ftplib.Error):
            ftp.close()

    def _client(self) -> ftplib.FTP:
        if self._ftp is None:
            raise TransportConnectionError("FTP session is not connected")
        return self._ftp

    async def list_files(self, directory: str) -> list[RemoteFile]:
        ftp = self._client()

        def _list():
            try:
                files = []
                for name, facts in ftp.mlsd(directory, facts=["type", "size", "modify"]):
                    if facts.get("type") not in (None, "file"):
                        continue
                    files.append(RemoteFile(
                        name=name,
                        size=int(facts.get("size") or 0),
                        modified_at=_parse_mlsd_time(facts.get("modify")),
                    ))
                return files
            except ftplib.error_perm:
                logger.debug("MLSD not supported, falling back to LIST")

            # LIST fallback, unix-style "perms links owner group size month day time name"
            lines = []
            ftp.retrlines(f"LIST {directory}", lines.append)
            files = []
            for line in lines:
                parts = line.split(maxsplit=8)
                if len(parts) < 9 or parts[0].startswith("d"):
                    continue
                try:
                    size = int(parts[4])
                except ValueError:
                    continue
                files.append(RemoteFile(name=parts[8], size=size))
            return files

        try:
            return await asyncio.to_thread(_list)
        except (OSError, EOFError, ftplib.Error) as e:
            raise TransportError(f"Cannot list {directory}: {e}") from e

    async def read_range(self, path: str, offset: int) -> bytes:
        ftp = self._client()

        def _read():
            chunks = []
            try:
                ftp.retrbinary(f"RETR {path}", chunks.append, rest=offset or None)
                return b"".join(chunks)
            except ftplib.error_perm as e:
                if not offset:
                    raise
                logger.debug(f"REST refused for {path} ({e}), reading from start")

            chunks = []
            ftp.retrbinary(f"RETR {path}", chunks.append)
            return b"".join(chunks)[offset:]

        try:
            return await asyncio.to_thread(_read)
        except (OSError, EOFError, ftplib.Error) as e:
            raise TransportError(f"Cannot read {path} from {offset}: {e}") from e


def choose_protocol(host: str, port: int, protocol: str = "auto") -> str:
    """
    Resolve the transport protocol.

    auto: port 22 or a host containing "sftp" selects SFTP, otherwise FTP.
    """
    if protocol in ("ftp", "sftp"):
        return protocol
    if "sftp" in host.lower() or port == 22:
        return "sftp"
    return "ftp"


def create_transport(settings) -> RemoteLogTransport:
    """Build the transport described by the FTP_* settings."""
    protocol = choose_protocol(settings.ftp_host, settings.ftp_port, settings.ftp_protocol)
    transport_cls = SFTPLogTransport if protocol == "sftp" else FTPLogTransport
    logger.info(f"Using {protocol.upper()} for {settings.ftp_host}:{settings.ftp_port}")
    return transport_cls(
        settings.ftp_host,
        settings.ftp_port,
        settings.ftp_user,
        settings.ftp_password,
        timeout=settings.ftp_timeout,
    )
