from __future__ import annotations

import asyncio
import ftplib
import io
import stat
from types import SimpleNamespace

import paramiko
import pytest

from cogs.admin.serverlogs import format_tick_summary
from services.log_monitor import TickResult
from services.remote_files import (
    FTPLogTransport,
    SFTPLogTransport,
    TransportError,
    choose_protocol,
    create_transport,
)


@pytest.mark.parametrize(
    ("host", "port", "protocol", "expected"),
    [
        ("files.example.net", 21, "auto", "ftp"),
        ("files.example.net", 22, "auto", "sftp"),
        ("sftp.host.gg", 2022, "auto", "sftp"),
        ("files.example.net", 22, "ftp", "ftp"),
        ("files.example.net", 21, "sftp", "sftp"),
    ],
)
def test_choose_protocol(host, port, protocol, expected):
    assert choose_protocol(host, port, protocol) == expected


def test_create_transport_uses_settings():
    settings = SimpleNamespace(
        ftp_host="sftp.host.gg",
        ftp_port=8822,
        ftp_user="dayz",
        ftp_password="secret",
        ftp_protocol="auto",
        ftp_timeout=5.0,
    )

    transport = create_transport(settings)

    assert isinstance(transport, SFTPLogTransport)
    assert (transport.host, transport.port, transport.timeout) == ("sftp.host.gg", 8822, 5.0)

    settings.ftp_host = "files.example.net"
    assert isinstance(create_transport(settings), FTPLogTransport)


def test_tick_summary_text():
    result = TickResult(
        started_at=0.0,
        files_listed=3,
        files_ingested=2,
        files_failed=1,
        events_classified=5,
        events_delivered=4,
        delivery_failures=1,
        aborted=True,
    )

    summary = format_tick_summary(result)

    assert "2 read / 3 matched / 1 failed" in summary
    assert "5 classified, 4 delivered, 1 failed" in summary
    assert "aborted" in summary
    assert format_tick_summary(None) == "No tick has run yet."


class FakeFTP:
    """Just enough of ftplib.FTP for listing and ranged reads."""

    def __init__(self, files: dict[str, bytes], mlsd_entries=None, list_lines=None, rest_supported=True):
        self.files = files
        self.mlsd_entries = mlsd_entries
        self.list_lines = list_lines or []
        self.rest_supported = rest_supported
        self.retr_calls = []

    def mlsd(self, path="", facts=()):
        if self.mlsd_entries is None:
            raise ftplib.error_perm("500 MLSD not understood")
        return iter(self.mlsd_entries)

    def retrlines(self, cmd, callback):
        for line in self.list_lines:
            callback(line)

    def retrbinary(self, cmd, callback, blocksize=8192, rest=None):
        self.retr_calls.append((cmd, rest))
        if rest is not None and not self.rest_supported:
            raise ftplib.error_perm("502 REST not implemented")
        path = cmd.split(" ", 1)[1]
        if path not in self.files:
            raise ftplib.error_perm(f"550 {path}: No such file")
        callback(self.files[path][rest or 0:])


class FakeSFTP:
    """listdir_attr/open over a dict, like paramiko.SFTPClient."""

    def __init__(self, entries, files: dict[str, bytes]):
        self.entries = entries
        self.files = files

    def listdir_attr(self, path="."):
        return list(self.entries)

    def open(self, path, mode="r"):
        if path not in self.files:
            raise paramiko.SFTPError("Garbage packet received")
        return io.BytesIO(self.files[path])


def sftp_attr(name: str, mode: int, size: int) -> paramiko.SFTPAttributes:
    attr = paramiko.SFTPAttributes()
    attr.filename = name
    attr.st_mode = mode
    attr.st_size = size
    attr.st_mtime = 1717279200
    return attr


def ftp_transport(fake: FakeFTP) -> FTPLogTransport:
    transport = FTPLogTransport("files.example.net", 21, "dayz", "secret")
    transport._ftp = fake
    return transport


def sftp_transport(fake: FakeSFTP) -> SFTPLogTransport:
    transport = SFTPLogTransport("files.example.net", 22, "dayz", "secret")
    transport._sftp = fake
    return transport


def test_ftp_listing_uses_mlsd_and_skips_directories():
    fake = FakeFTP({}, mlsd_entries=[
        (".", {"type": "cdir"}),
        ("..", {"type": "pdir"}),
        ("archive", {"type": "dir", "size": "4096"}),
        ("server.ADM", {"type": "file", "size": "1234", "modify": "20240601220000"}),
    ])

    files = asyncio.run(ftp_transport(fake).list_files("/logs"))

    assert [(f.name, f.size) for f in files] == [("server.ADM", 1234)]
    assert files[0].modified_at.year == 2024


def test_ftp_listing_falls_back_to_list():
    fake = FakeFTP({}, list_lines=[
        "total 12",
        "drwxr-xr-x 2 dayz dayz 4096 Jun 01 12:00 archive",
        "-rw-r--r-- 1 dayz dayz 1234 Jun 01 12:00 server.ADM",
        "-rw-r--r-- 1 dayz dayz huge Jun 01 12:00 broken.log",
        "-rw-r--r-- 1 dayz dayz 77 Jun 01 12:00 script 2024.log",
    ])

    files = asyncio.run(ftp_transport(fake).list_files("/logs"))

    assert [(f.name, f.size) for f in files] == [("server.ADM", 1234), ("script 2024.log", 77)]


def test_ftp_read_range_resumes_at_offset():
    fake = FakeFTP({"/x.log": b"line1\nline2\n"})

    data = asyncio.run(ftp_transport(fake).read_range("/x.log", 6))

    assert data == b"line2\n"
    assert fake.retr_calls == [("RETR /x.log", 6)]


def test_ftp_read_range_rereads_when_rest_is_refused():
    fake = FakeFTP({"/x.log": b"line1\nline2\n"}, rest_supported=False)

    data = asyncio.run(ftp_transport(fake).read_range("/x.log", 6))

    assert data == b"line2\n"
    assert fake.retr_calls == [("RETR /x.log", 6), ("RETR /x.log", None)]


def test_ftp_missing_file_is_a_transport_error():
    fake = FakeFTP({})

    with pytest.raises(TransportError):
        asyncio.run(ftp_transport(fake).read_range("/gone.log", 0))
    assert len(fake.retr_calls) == 1


def test_sftp_listing_skips_directories():
    fake = FakeSFTP([
        sftp_attr("archive", stat.S_IFDIR | 0o755, 4096),
        sftp_attr("server.ADM", stat.S_IFREG | 0o644, 1234),
    ], {})

    files = asyncio.run(sftp_transport(fake).list_files("/logs"))

    assert [(f.name, f.size) for f in files] == [("server.ADM", 1234)]
    assert files[0].modified_at is not None


def test_sftp_read_range_seeks_to_offset():
    fake = FakeSFTP([], {"/logs/server.ADM": b"line1\nline2\n"})
    transport = sftp_transport(fake)

    assert asyncio.run(transport.read_range("/logs/server.ADM", 6)) == b"line2\n"
    assert asyncio.run(transport.read_all("/logs/server.ADM")) == b"line1\nline2\n"


def test_sftp_protocol_error_is_a_transport_error():
    fake = FakeSFTP([], {})

    with pytest.raises(TransportError, match="Garbage packet"):
        asyncio.run(sftp_transport(fake).read_range("/logs/server.ADM", 0))


def test_unconnected_transport_refuses_reads():
    with pytest.raises(TransportError):
        asyncio.run(FTPLogTransport("h", 21, "u", "p").read_range("/x.log", 0))
