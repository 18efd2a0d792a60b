import logging
import socket
import socketserver
import typing

from polydb.lib.db import DatabaseWorker

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


def format_reply(worker: DatabaseWorker, line: str) -> str:
    try:
        result = worker.run(line)
    except Exception as e:
        logger.debug("statement failed: %r", e)
        result = f"Error: {e}"
    # One reply line per statement.
    return " ".join(result.splitlines())


class StatementHandler(socketserver.StreamRequestHandler):
    server: "DatabaseServer"

    def handle(self) -> None:
        logger.debug("connection from %s", self.client_address)
        for raw in self.rfile:
            line = raw.decode(ENCODING).strip()
            if not line:
                continue
            logger.debug("statement %r", line)
            reply = format_reply(self.server.worker, line)
            self.wfile.write((reply + "\n").encode(ENCODING))
            self.wfile.flush()


class DatabaseServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address: typing.Tuple[str, int], worker: DatabaseWorker) -> None:
        super().__init__(address, StatementHandler)
        self.worker = worker


def serve(host: str, port: int, worker: typing.Optional[DatabaseWorker] = None) -> None:
    with worker or DatabaseWorker() as worker_, DatabaseServer((host, port), worker_) as server:
        print("serving at port", server.server_address[1])
        server.serve_forever()


def parse_address(url: str) -> typing.Tuple[str, int]:
    host, sep, port = url.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"expected HOST:PORT, got '{url}'")
    return host or "localhost", int(port)


class Session:
    """Client side of the line protocol: one statement out, one line back."""

    def __init__(self, url: str) -> None:
        self.sock = socket.create_connection(parse_address(url))
        self.file = self.sock.makefile("rwb")

    def send(self, statement: str) -> str:
        self.file.write((statement.strip() + "\n").encode(ENCODING))
        self.file.flush()
        reply = self.file.readline()
        if not reply:
            raise ConnectionError("server closed the connection")
        return reply.decode(ENCODING).rstrip("\n")

    def close(self) -> None:
        self.file.close()
        self.sock.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *args: typing.Any) -> None:
        self.close()
