import threading
from typing import Iterator

import pytest

from polydb.lib.db import DatabaseWorker
from polydb.lib.server import DatabaseServer


@pytest.fixture
def server_url() -> Iterator[str]:
    with DatabaseWorker() as worker, DatabaseServer(("127.0.0.1", 0), worker) as server:
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            host, port = server.server_address[:2]
            yield f"{host}:{port}"
        finally:
            server.shutdown()
            thread.join()
